"""
Operation Packer Test Suite
Tests initCode, gas-limit and gas-fee limbs, paymasterAndData layout,
and overflow rejection.

Usage:  pytest tests/test_packing.py
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cosigner.errors import EncodingError
from cosigner.models import Proposal
from cosigner.packing import (
    MAX_LIMB,
    pack_account_gas_limits,
    pack_gas_fees,
    pack_init_code,
    pack_operation,
    pack_paymaster_and_data,
    pad16,
)

FACTORY = "0x" + "11" * 20
PAYMASTER = "0x" + "22" * 20


def make_proposal(**overrides) -> Proposal:
    fields = dict(
        sender="0x0000000000001d8a2e7bf6bc369525a2654aa298",
        nonce=7,
        call_data=b"\xde\xad",
        verification_gas_limit=100_000,
        call_gas_limit=50_000,
        pre_verification_gas=21_000,
        max_fee_per_gas=100,
        max_priority_fee_per_gas=1,
        chain="base",
        content="Send 1 ETH to the treasury",
        user_op_hash="0x" + "ab" * 32,
    )
    fields.update(overrides)
    return Proposal(**fields)


# ---------------------------------------------------------------------------
# pad16
# ---------------------------------------------------------------------------

def test_pad16_is_big_endian_16_bytes():
    assert pad16(0) == b"\x00" * 16
    assert pad16(1) == b"\x00" * 15 + b"\x01"
    assert pad16(MAX_LIMB) == b"\xff" * 16


def test_pad16_rejects_overflow_and_negatives():
    with pytest.raises(EncodingError):
        pad16(MAX_LIMB + 1)
    with pytest.raises(EncodingError):
        pad16(-1)


# ---------------------------------------------------------------------------
# initCode
# ---------------------------------------------------------------------------

def test_init_code_empty_without_factory():
    assert pack_init_code(None) == b""
    assert pack_init_code(None, b"\x01\x02") == b""


def test_init_code_is_factory_then_data():
    data = b"\xca\xfe\xba\xbe"
    assert pack_init_code(FACTORY, data) == bytes.fromhex("11" * 20) + data


def test_init_code_rejects_short_factory():
    with pytest.raises(EncodingError):
        pack_init_code("0x1234", b"")


# ---------------------------------------------------------------------------
# accountGasLimits / gasFees
# ---------------------------------------------------------------------------

def test_account_gas_limits_layout():
    packed = pack_account_gas_limits(100_000, 50_000)
    assert len(packed) == 32
    assert int.from_bytes(packed[:16], "big") == 100_000
    assert int.from_bytes(packed[16:], "big") == 50_000


def test_gas_fees_priority_left_max_right():
    packed = pack_gas_fees(1, 100)
    assert len(packed) == 32
    assert int.from_bytes(packed[:16], "big") == 1
    assert int.from_bytes(packed[16:], "big") == 100


def test_gas_fees_overflow_raises():
    with pytest.raises(EncodingError):
        pack_gas_fees(1, 1 << 128)


# ---------------------------------------------------------------------------
# paymasterAndData
# ---------------------------------------------------------------------------

def test_paymaster_and_data_empty_without_paymaster():
    assert pack_paymaster_and_data(None, 10, 20, b"\x01") == b""


def test_paymaster_and_data_fixed_order():
    packed = pack_paymaster_and_data(PAYMASTER, 10, 20, b"\x99")
    assert packed[:20] == bytes.fromhex("22" * 20)
    assert int.from_bytes(packed[20:36], "big") == 10
    assert int.from_bytes(packed[36:52], "big") == 20
    assert packed[52:] == b"\x99"


def test_paymaster_defaults_to_zero_limits_and_empty_data():
    packed = pack_paymaster_and_data(PAYMASTER)
    assert len(packed) == 52
    assert packed[20:] == b"\x00" * 32


# ---------------------------------------------------------------------------
# Whole operation
# ---------------------------------------------------------------------------

def test_pack_operation_without_optional_parts():
    packed = pack_operation(make_proposal())
    assert packed.init_code == b""
    assert packed.paymaster_and_data == b""
    assert len(packed.account_gas_limits) == 32
    assert len(packed.gas_fees) == 32


def test_pack_operation_with_factory_and_paymaster():
    packed = pack_operation(make_proposal(
        factory=FACTORY,
        factory_data=b"\x01",
        paymaster=PAYMASTER,
        paymaster_verification_gas_limit=5,
        paymaster_post_op_gas_limit=6,
        paymaster_data=b"\x02",
    ))
    assert packed.init_code == bytes.fromhex("11" * 20) + b"\x01"
    assert packed.paymaster_and_data == (
        bytes.fromhex("22" * 20) + pad16(5) + pad16(6) + b"\x02"
    )


def test_pack_operation_rejects_oversized_call_gas():
    with pytest.raises(EncodingError):
        pack_operation(make_proposal(call_gas_limit=1 << 130))
