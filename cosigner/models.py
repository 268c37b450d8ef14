"""
Domain Types
Proposals read from the backlog, oracle decisions, stored outcomes and
EIP-712 signing domains.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from cosigner.errors import EncodingError

MAX_UINT256 = (1 << 256) - 1


# ---------------------------------------------------------------------------
# Column coercion
# ---------------------------------------------------------------------------

def to_quantity(value: Any, name: str = "value") -> int:
    """Coerce an int, Decimal, decimal string or 0x-hex string to int."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise EncodingError(f"{name}: booleans are not quantities")
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise EncodingError(f"{name}: non-integral quantity {value}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            raise EncodingError(f"{name}: not a quantity: {value!r}") from None
    raise EncodingError(f"{name}: unsupported quantity type {type(value).__name__}")


def to_bytes_field(value: Any, name: str = "value") -> bytes:
    """Coerce a 0x-hex string, bytes or memoryview to bytes."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            text = text[2:]
        if len(text) % 2:
            raise EncodingError(f"{name}: odd-length hex string")
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise EncodingError(f"{name}: not a hex string: {value!r}") from None
    raise EncodingError(f"{name}: unsupported bytes type {type(value).__name__}")


def to_uint256(value: Any, name: str = "value") -> int:
    """Like to_quantity, but the result must fit an unsigned 256-bit word."""
    number = to_quantity(value, name)
    if number < 0 or number > MAX_UINT256:
        raise EncodingError(f"{name}: out of uint256 range")
    return number


def _optional_address(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text in ("", "0x"):
        return None
    return text


def _optional_quantity(row: Mapping[str, Any], key: str) -> Optional[int]:
    value = row.get(key)
    if value is None or value == "":
        return None
    return to_quantity(value, key)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Proposal:
    sender: str
    nonce: int
    call_data: bytes
    verification_gas_limit: int
    call_gas_limit: int
    pre_verification_gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    chain: str
    content: str
    user_op_hash: str
    created_at: Optional[datetime] = None
    factory: Optional[str] = None
    factory_data: bytes = b""
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None
    paymaster_data: bytes = b""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Proposal":
        """Build a Proposal from a ``proposals`` row (camelCase columns)."""
        return cls(
            sender=str(row["sender"]),
            nonce=to_uint256(row["nonce"], "nonce"),
            call_data=to_bytes_field(row.get("callData"), "callData"),
            verification_gas_limit=to_quantity(row.get("verificationGasLimit"), "verificationGasLimit"),
            call_gas_limit=to_quantity(row.get("callGasLimit"), "callGasLimit"),
            pre_verification_gas=to_quantity(row.get("preVerificationGas"), "preVerificationGas"),
            max_fee_per_gas=to_quantity(row.get("maxFeePerGas"), "maxFeePerGas"),
            max_priority_fee_per_gas=to_quantity(row.get("maxPriorityFeePerGas"), "maxPriorityFeePerGas"),
            chain=str(row.get("chain") or ""),
            content=str(row.get("content") or ""),
            user_op_hash=str(row["userOpHash"]),
            created_at=row.get("created_at"),
            factory=_optional_address(row.get("factory")),
            factory_data=to_bytes_field(row.get("factoryData"), "factoryData"),
            paymaster=_optional_address(row.get("paymaster")),
            paymaster_verification_gas_limit=_optional_quantity(row, "paymasterVerificationGasLimit"),
            paymaster_post_op_gas_limit=_optional_quantity(row, "paymasterPostOpGasLimit"),
            paymaster_data=to_bytes_field(row.get("paymasterData"), "paymasterData"),
        )


@dataclass
class VoteDecision:
    vote: bool
    reason: str
    raw: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "VoteDecision":
        """Interpret a parsed oracle body. Non-object payloads vote no."""
        if not isinstance(payload, dict):
            return cls(vote=False, reason="", raw=payload)
        reason = payload.get("reason")
        if reason is None:
            reason = ""
        elif not isinstance(reason, str):
            reason = str(reason)
        return cls(vote=bool(payload.get("vote")), reason=reason, raw=payload)


@dataclass
class SignedOutcome:
    signer: str
    account: Optional[str]
    hash: str
    signature: str       # "" means rejected
    reason: str

    @property
    def rejected(self) -> bool:
        return self.signature == ""


@dataclass(frozen=True)
class Domain:
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def as_eip712(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


@dataclass(frozen=True)
class ValidatorDescriptor:
    id: str
    address: str
    title: str = ""
    description: str = ""
    icon: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
