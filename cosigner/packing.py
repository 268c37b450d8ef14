"""
Operation Packer
Packs the logical fields of a user operation into the byte fields of an
ERC-4337 v0.7 PackedUserOperation. Pure functions, no I/O.

All integers are big-endian and zero-padded to 16-byte limbs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cosigner.errors import EncodingError
from cosigner.models import Proposal, to_bytes_field

LIMB_SIZE = 16
MAX_LIMB = (1 << (8 * LIMB_SIZE)) - 1


@dataclass(frozen=True)
class PackedOperation:
    init_code: bytes
    account_gas_limits: bytes
    gas_fees: bytes
    paymaster_and_data: bytes


def pad16(value: int, name: str = "value") -> bytes:
    """Encode ``value`` as a 16-byte big-endian limb."""
    if value < 0:
        raise EncodingError(f"{name} is negative: {value}")
    if value > MAX_LIMB:
        raise EncodingError(f"{name} does not fit in 128 bits: {value}")
    return value.to_bytes(LIMB_SIZE, "big")


def _address(value: str, name: str) -> bytes:
    raw = to_bytes_field(value, name)
    if len(raw) != 20:
        raise EncodingError(f"{name} must be a 20-byte address, got {len(raw)} bytes")
    return raw


def pack_init_code(factory: Optional[str], factory_data: bytes = b"") -> bytes:
    if not factory:
        return b""
    return _address(factory, "factory") + (factory_data or b"")


def pack_account_gas_limits(verification_gas_limit: int, call_gas_limit: int) -> bytes:
    return (
        pad16(verification_gas_limit, "verificationGasLimit")
        + pad16(call_gas_limit, "callGasLimit")
    )


def pack_gas_fees(max_priority_fee_per_gas: int, max_fee_per_gas: int) -> bytes:
    return (
        pad16(max_priority_fee_per_gas, "maxPriorityFeePerGas")
        + pad16(max_fee_per_gas, "maxFeePerGas")
    )


def pack_paymaster_and_data(
    paymaster: Optional[str],
    verification_gas_limit: Optional[int] = None,
    post_op_gas_limit: Optional[int] = None,
    paymaster_data: bytes = b"",
) -> bytes:
    if not paymaster:
        return b""
    return (
        _address(paymaster, "paymaster")
        + pad16(verification_gas_limit or 0, "paymasterVerificationGasLimit")
        + pad16(post_op_gas_limit or 0, "paymasterPostOpGasLimit")
        + (paymaster_data or b"")
    )


def pack_operation(proposal: Proposal) -> PackedOperation:
    return PackedOperation(
        init_code=pack_init_code(proposal.factory, proposal.factory_data),
        account_gas_limits=pack_account_gas_limits(
            proposal.verification_gas_limit, proposal.call_gas_limit,
        ),
        gas_fees=pack_gas_fees(
            proposal.max_priority_fee_per_gas, proposal.max_fee_per_gas,
        ),
        paymaster_and_data=pack_paymaster_and_data(
            proposal.paymaster,
            proposal.paymaster_verification_gas_limit,
            proposal.paymaster_post_op_gas_limit,
            proposal.paymaster_data,
        ),
    )
