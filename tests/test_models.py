"""
Domain Types Test Suite
Tests row parsing into Proposal and oracle payload interpretation.

Usage:  pytest tests/test_models.py
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cosigner.errors import EncodingError
from cosigner.models import MAX_UINT256, Proposal, VoteDecision, to_bytes_field, to_quantity


def make_row(**overrides) -> dict:
    row = {
        "sender": "0x0000000000001d8a2e7bf6bc369525a2654aa298",
        "nonce": Decimal("5"),
        "callData": "0xdeadbeef",
        "verificationGasLimit": "0x186a0",
        "callGasLimit": "50000",
        "preVerificationGas": 21000,
        "maxFeePerGas": "100",
        "maxPriorityFeePerGas": "1",
        "factory": None,
        "factoryData": None,
        "paymaster": None,
        "paymasterVerificationGasLimit": None,
        "paymasterPostOpGasLimit": None,
        "paymasterData": None,
        "chain": "base",
        "content": "Pay the contributor",
        "userOpHash": "0x" + "cd" * 32,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def test_to_quantity_accepts_common_encodings():
    assert to_quantity(None) == 0
    assert to_quantity("") == 0
    assert to_quantity(12) == 12
    assert to_quantity(Decimal("12")) == 12
    assert to_quantity("12") == 12
    assert to_quantity("0x0c") == 12


def test_to_quantity_rejects_garbage():
    with pytest.raises(EncodingError):
        to_quantity("twelve")
    with pytest.raises(EncodingError):
        to_quantity(Decimal("1.5"))
    with pytest.raises(EncodingError):
        to_quantity(True)


def test_to_bytes_field():
    assert to_bytes_field(None) == b""
    assert to_bytes_field("0x") == b""
    assert to_bytes_field("0x0102") == b"\x01\x02"
    assert to_bytes_field(memoryview(b"\x03")) == b"\x03"
    with pytest.raises(EncodingError):
        to_bytes_field("0x123")


def test_from_row_parses_all_columns():
    proposal = Proposal.from_row(make_row())
    assert proposal.nonce == 5
    assert proposal.call_data == bytes.fromhex("deadbeef")
    assert proposal.verification_gas_limit == 100_000
    assert proposal.call_gas_limit == 50_000
    assert proposal.pre_verification_gas == 21_000
    assert proposal.factory is None
    assert proposal.paymaster is None
    assert proposal.paymaster_verification_gas_limit is None
    assert proposal.chain == "base"


def test_from_row_treats_empty_factory_as_absent():
    proposal = Proposal.from_row(make_row(factory="0x", paymaster=""))
    assert proposal.factory is None
    assert proposal.paymaster is None


def test_from_row_optional_paymaster_fields():
    proposal = Proposal.from_row(make_row(
        paymaster="0x" + "22" * 20,
        paymasterVerificationGasLimit="7",
        paymasterData="0xff",
    ))
    assert proposal.paymaster_verification_gas_limit == 7
    assert proposal.paymaster_post_op_gas_limit is None
    assert proposal.paymaster_data == b"\xff"


def test_from_row_rejects_nonce_outside_uint256():
    assert Proposal.from_row(make_row(nonce=hex(MAX_UINT256))).nonce == MAX_UINT256
    with pytest.raises(EncodingError):
        Proposal.from_row(make_row(nonce=1 << 256))
    with pytest.raises(EncodingError):
        Proposal.from_row(make_row(nonce=1 << 320))
    with pytest.raises(EncodingError):
        Proposal.from_row(make_row(nonce="-1"))


def test_vote_decision_from_object():
    decision = VoteDecision.from_payload({"vote": True, "reason": "Good for the DAO"})
    assert decision.vote is True
    assert decision.reason == "Good for the DAO"
    assert decision.raw == {"vote": True, "reason": "Good for the DAO"}


def test_vote_decision_from_non_object_votes_no():
    decision = VoteDecision.from_payload([1, 2, 3])
    assert decision.vote is False
    assert decision.reason == ""


def test_vote_decision_missing_reason():
    decision = VoteDecision.from_payload({"vote": False})
    assert decision.vote is False
    assert decision.reason == ""
