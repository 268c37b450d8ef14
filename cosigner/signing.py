"""
Operation Signing
Builds the ValidateUserOp typed-data message for a proposal and hands it,
with the resolved domain, to the signing capability.

Key custody is not handled here. Anything that exposes ``address`` and
``sign_typed_data`` can be injected as the Signer; LocalAccountSigner
covers development keys held by eth-account.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from eth_account import Account
from eth_account.messages import encode_typed_data

from cosigner.domain import DomainResolver
from cosigner.errors import SigningError
from cosigner.models import Domain, Proposal
from cosigner.packing import PackedOperation, pack_operation

logger = logging.getLogger(__name__)

PRIMARY_TYPE = "ValidateUserOp"

VALIDATE_USER_OP_TYPES: dict[str, list[dict[str, str]]] = {
    PRIMARY_TYPE: [
        {"name": "sender", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "initCode", "type": "bytes"},
        {"name": "callData", "type": "bytes"},
        {"name": "accountGasLimits", "type": "bytes32"},
        {"name": "preVerificationGas", "type": "uint256"},
        {"name": "gasFees", "type": "bytes32"},
        {"name": "paymasterAndData", "type": "bytes"},
        {"name": "validUntil", "type": "uint48"},
        {"name": "validAfter", "type": "uint48"},
    ],
}


class Signer(Protocol):
    """Signing capability consumed by the pipeline."""

    @property
    def address(self) -> str: ...

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> str: ...


class LocalAccountSigner:
    """Signer backed by an in-process eth-account key."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_typed_data(self, domain, types, primary_type, message) -> str:
        if primary_type not in types:
            raise ValueError(f"Primary type {primary_type} missing from types")
        signable = encode_typed_data(domain, types, message)
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()


def build_message(proposal: Proposal, packed: PackedOperation) -> dict[str, Any]:
    """ValidateUserOp message; operations never expire."""
    return {
        "sender": proposal.sender,
        "nonce": proposal.nonce,
        "initCode": packed.init_code,
        "callData": proposal.call_data,
        "accountGasLimits": packed.account_gas_limits,
        "preVerificationGas": proposal.pre_verification_gas,
        "gasFees": packed.gas_fees,
        "paymasterAndData": packed.paymaster_and_data,
        "validUntil": 0,
        "validAfter": 0,
    }


def sign_with(signer: Signer, domain: Domain, message: dict[str, Any]) -> str:
    try:
        return signer.sign_typed_data(
            domain.as_eip712(), VALIDATE_USER_OP_TYPES, PRIMARY_TYPE, message,
        )
    except Exception as exc:
        raise SigningError(f"Signer failed: {exc}") from exc


def sign_proposal(signer: Signer, resolver: DomainResolver, proposal: Proposal) -> str:
    """Pack, resolve the domain, and sign. Returns the 0x-hex signature."""
    packed = pack_operation(proposal)
    domain = resolver.resolve(proposal.sender, proposal.chain, proposal.nonce)
    message = build_message(proposal, packed)
    logger.info("Signing user operation %s under domain %s/%s chain %d",
                proposal.user_op_hash, domain.name, domain.version, domain.chain_id)
    return sign_with(signer, domain, message)
