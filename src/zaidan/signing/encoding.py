"""
0x Transaction Encoding - ZEIP-18 Fill Transactions

Deterministic encoders shared by the order signer and its tests:

- ABI encoding of ``Exchange.fillOrder`` call data
- ERC20 asset data decoding
- EIP-712 hashing of ``ZeroExTransaction`` structs (v2 and v3 schemas)
- 0x signature rendering (``EthSign`` signature type)

The transaction hash is what the taker signs; the dealer and the Exchange
contract recompute it from the same fields to recover the signer.
"""

from typing import Optional, Tuple

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address, to_hex

from ..models import FillTransaction, MakerOrder, ProtocolVersion


ORDER_TUPLE_V2 = "(address,address,address,address,uint256,uint256,uint256,uint256,uint256,uint256,bytes,bytes)"
ORDER_TUPLE_V3 = "(address,address,address,address,uint256,uint256,uint256,uint256,uint256,uint256,bytes,bytes,bytes,bytes)"

FILL_ORDER_SIGNATURES = {
    ProtocolVersion.V2: f"fillOrder({ORDER_TUPLE_V2},uint256,bytes)",
    ProtocolVersion.V3: f"fillOrder({ORDER_TUPLE_V3},uint256,bytes)",
}

ERC20_ASSET_PROXY_ID = bytes.fromhex("f47261b0")

EIP712_DOMAIN_NAME = "0x Protocol"
EIP712_DOMAIN_VERSIONS = {
    ProtocolVersion.V2: "2",
    ProtocolVersion.V3: "3.0.0",
}
EIP712_DOMAIN_SCHEMAS = {
    ProtocolVersion.V2: "EIP712Domain(string name,string version,address verifyingContract)",
    ProtocolVersion.V3: "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)",
}
ZEROEX_TRANSACTION_SCHEMAS = {
    ProtocolVersion.V2: "ZeroExTransaction(uint256 salt,address signerAddress,bytes data)",
    ProtocolVersion.V3: (
        "ZeroExTransaction(uint256 salt,uint256 expirationTimeSeconds,"
        "uint256 gasPrice,address signerAddress,bytes data)"
    ),
}

# 0x SignatureType.EthSign, identical in v2 and v3
ETH_SIGN_SIGNATURE_TYPE = 3


def _hex_bytes(value: str) -> bytes:
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 of a canonical function signature."""
    return keccak(text=signature)[:4]


def order_abi_tuple(order: MakerOrder, version: ProtocolVersion) -> tuple:
    """Order struct in ABI field order for ``version`` (signature excluded)."""
    fields = [
        to_checksum_address(order.maker_address),
        to_checksum_address(order.taker_address),
        to_checksum_address(order.fee_recipient_address),
        to_checksum_address(order.sender_address),
        order.maker_asset_amount,
        order.taker_asset_amount,
        order.maker_fee,
        order.taker_fee,
        order.expiration_time_seconds,
        order.salt,
        _hex_bytes(order.maker_asset_data),
        _hex_bytes(order.taker_asset_data),
    ]
    if version is ProtocolVersion.V3:
        fields.append(_hex_bytes(order.maker_fee_asset_data))
        fields.append(_hex_bytes(order.taker_fee_asset_data))
    return tuple(fields)


def encode_fill_order(
    order: MakerOrder,
    taker_asset_fill_amount: int,
    version: ProtocolVersion = ProtocolVersion.V2,
) -> str:
    """
    ABI-encode ``fillOrder(order, takerAssetFillAmount, signature)``.

    Returns:
        0x-prefixed call data
    """
    order_type = ORDER_TUPLE_V3 if version is ProtocolVersion.V3 else ORDER_TUPLE_V2
    selector = function_selector(FILL_ORDER_SIGNATURES[version])
    args = encode(
        [order_type, "uint256", "bytes"],
        [
            order_abi_tuple(order, version),
            taker_asset_fill_amount,
            _hex_bytes(order.signature),
        ],
    )
    return to_hex(selector + args)


def decode_erc20_asset_data(asset_data: str) -> str:
    """
    Extract the token address from ERC20 proxy asset data.

    Raises:
        ValueError: If the data is not ERC20 asset data
    """
    raw = _hex_bytes(asset_data)
    if len(raw) != 36 or raw[:4] != ERC20_ASSET_PROXY_ID:
        raise ValueError(f"not ERC20 asset data: {asset_data}")
    (token,) = decode(["address"], raw[4:])
    return to_checksum_address(token)


def encode_erc20_asset_data(token_address: str) -> str:
    return to_hex(ERC20_ASSET_PROXY_ID + encode(["address"], [to_checksum_address(token_address)]))


def domain_separator(
    verifying_contract: str,
    version: ProtocolVersion = ProtocolVersion.V2,
    chain_id: Optional[int] = None,
) -> bytes:
    """EIP-712 domain separator of the 0x Exchange."""
    schema_hash = keccak(text=EIP712_DOMAIN_SCHEMAS[version])
    name_hash = keccak(text=EIP712_DOMAIN_NAME)
    version_hash = keccak(text=EIP712_DOMAIN_VERSIONS[version])
    contract = to_checksum_address(verifying_contract)
    if version is ProtocolVersion.V3:
        if chain_id is None:
            raise ValueError("chain_id is required for 0x v3 domains")
        return keccak(encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [schema_hash, name_hash, version_hash, chain_id, contract],
        ))
    return keccak(encode(
        ["bytes32", "bytes32", "bytes32", "address"],
        [schema_hash, name_hash, version_hash, contract],
    ))


def transaction_struct_hash(tx: FillTransaction) -> bytes:
    """hashStruct(ZeroExTransaction) for the transaction's protocol version."""
    schema_hash = keccak(text=ZEROEX_TRANSACTION_SCHEMAS[tx.protocol_version])
    data_hash = keccak(_hex_bytes(tx.data))
    signer = to_checksum_address(tx.signer_address)
    if tx.protocol_version is ProtocolVersion.V3:
        return keccak(encode(
            ["bytes32", "uint256", "uint256", "uint256", "address", "bytes32"],
            [
                schema_hash,
                tx.salt,
                tx.expiration_time_seconds,
                tx.gas_price,
                signer,
                data_hash,
            ],
        ))
    return keccak(encode(
        ["bytes32", "uint256", "address", "bytes32"],
        [schema_hash, tx.salt, signer, data_hash],
    ))


def transaction_hash(tx: FillTransaction) -> bytes:
    """Canonical ``\\x19\\x01 || domainSeparator || hashStruct`` digest."""
    separator = domain_separator(tx.verifying_contract, tx.protocol_version, tx.chain_id)
    return keccak(b"\x19\x01" + separator + transaction_struct_hash(tx))


def transaction_hash_hex(tx: FillTransaction) -> str:
    return to_hex(transaction_hash(tx))


def split_signature(signature: bytes) -> Tuple[int, bytes, bytes]:
    """Split a 65-byte ``r || s || v`` signature into ``(v, r, s)``."""
    return signature[64], signature[:32], signature[32:64]


def to_zeroex_signature(signature: bytes) -> str:
    """Render ``r || s || v`` as a 0x ``v || r || s || type`` hex string."""
    v, r, s = split_signature(signature)
    return to_hex(bytes([v]) + r + s + bytes([ETH_SIGN_SIGNATURE_TYPE]))


def parse_zeroex_signature(signature: str) -> Tuple[int, int, int]:
    """
    Parse a 0x ``EthSign`` signature into integer ``(v, r, s)``.

    Raises:
        ValueError: If the signature is not a 66-byte EthSign signature
    """
    raw = _hex_bytes(signature)
    if len(raw) != 66 or raw[65] != ETH_SIGN_SIGNATURE_TYPE:
        raise ValueError("not a 0x EthSign signature")
    return raw[0], int.from_bytes(raw[1:33], "big"), int.from_bytes(raw[33:65], "big")
