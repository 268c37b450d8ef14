"""
Validator Module Registry
Static id -> descriptor mapping for the account's validator modules,
loaded from validators.json.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from cosigner.errors import ConfigurationError
from cosigner.models import ValidatorDescriptor
from cosigner.settings import DEFAULT_VALIDATOR_REGISTRY

REMOTE_VALIDATOR_ID = "remote-validator"

_cache: dict[Path, dict[str, ValidatorDescriptor]] = {}


def load_validators(path: Path | str = DEFAULT_VALIDATOR_REGISTRY) -> dict[str, ValidatorDescriptor]:
    """Load the validator registry from disk (cached per path)."""
    path = Path(path)
    if path in _cache:
        return _cache[path]
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot load validator registry {path}: {exc}") from exc

    result: dict[str, ValidatorDescriptor] = {}
    for validator_id, info in data.get("validators", {}).items():
        address = info.get("address", "")
        if not isinstance(address, str) or not address.startswith("0x") or len(address) != 42:
            raise ConfigurationError(
                f"Validator {validator_id} must have a 0x-prefixed 20-byte address"
            )
        result[validator_id] = ValidatorDescriptor(
            id=validator_id,
            address=address,
            title=info.get("title", ""),
            description=info.get("description", ""),
            icon=info.get("icon", ""),
            metadata={k: v for k, v in info.items()
                      if k not in ("address", "title", "description", "icon")},
        )
    _cache[path] = result
    return result


def reload_validators(path: Path | str = DEFAULT_VALIDATOR_REGISTRY) -> dict[str, ValidatorDescriptor]:
    """Force reload from disk."""
    _cache.pop(Path(path), None)
    return load_validators(path)


class ValidatorRegistry:
    def __init__(self, validators: dict[str, ValidatorDescriptor]):
        self._validators = dict(validators)

    @classmethod
    def from_file(cls, path: Path | str = DEFAULT_VALIDATOR_REGISTRY) -> "ValidatorRegistry":
        return cls(load_validators(path))

    def get(self, validator_id: str) -> Optional[ValidatorDescriptor]:
        return self._validators.get(validator_id)

    def __contains__(self, validator_id: str) -> bool:
        return validator_id in self._validators

    def __len__(self) -> int:
        return len(self._validators)
