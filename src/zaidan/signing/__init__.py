"""Fill transaction construction and signing."""

from .encoding import (
    decode_erc20_asset_data,
    encode_erc20_asset_data,
    encode_fill_order,
    transaction_hash,
    transaction_hash_hex,
)
from .order_signer import OrderSigner, generate_salt, order_pair_tickers, recover_signer

__all__ = [
    "OrderSigner",
    "decode_erc20_asset_data",
    "encode_erc20_asset_data",
    "encode_fill_order",
    "generate_salt",
    "order_pair_tickers",
    "recover_signer",
    "transaction_hash",
    "transaction_hash_hex",
]
