"""
Property-based tests for input validation and signature handling.
"""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from zaidan.clients.allowance_client import ALLOWANCE_THRESHOLD, MAX_ALLOWANCE, is_sufficient
from zaidan.clients.quote_client import validate_size
from zaidan.exceptions import InvalidInput, InvalidTransactionId
from zaidan.models import validate_tx_id
from zaidan.signing.encoding import parse_zeroex_signature, to_zeroex_signature


@given(st.floats(min_value=1e-18, max_value=1e12, allow_nan=False, allow_infinity=False))
def test_positive_sizes_accepted(size):
    assert validate_size(size) == size


@given(st.one_of(
    st.floats(max_value=0),
    st.just(math.inf),
    st.just(math.nan),
    st.integers(max_value=0),
))
def test_non_positive_sizes_rejected(size):
    with pytest.raises(InvalidInput):
        validate_size(size)


@given(st.binary(min_size=32, max_size=32))
def test_any_32_byte_hash_is_a_valid_tx_id(raw):
    tx_id = "0x" + raw.hex()
    assert validate_tx_id(tx_id) == tx_id


@given(st.text(max_size=80))
def test_arbitrary_text_rarely_valid_tx_id(text):
    if len(text) == 66 and text.startswith("0x"):
        return
    with pytest.raises(InvalidTransactionId):
        validate_tx_id(text)


@given(st.integers(min_value=0, max_value=MAX_ALLOWANCE))
def test_allowance_threshold(allowance):
    assert is_sufficient(allowance) == (allowance > ALLOWANCE_THRESHOLD)


@settings(max_examples=50)
@given(
    st.binary(min_size=32, max_size=32),
    st.binary(min_size=32, max_size=32),
    st.sampled_from([27, 28]),
)
def test_zeroex_signature_preserves_components(r, s, v):
    parsed = parse_zeroex_signature(to_zeroex_signature(r + s + bytes([v])))
    assert parsed == (v, int.from_bytes(r, "big"), int.from_bytes(s, "big"))
