"""
Signing Domain Resolution
Resolves the EIP-712 domain an operation must be signed under.

The default domain is read from the account contract's eip712Domain()
view (ERC-5267). When the operation's nonce key names the remote
validator module, the validator's own fixed domain is used instead.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from web3 import HTTPProvider, Web3

from cosigner.errors import ConfigurationError, DomainResolutionError, UnsupportedChainError
from cosigner.models import Domain
from cosigner.validators import REMOTE_VALIDATOR_ID, ValidatorRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------

class Chain(str, Enum):
    ETH = "eth"
    ARBITRUM = "arbitrum"
    BASE = "base"

    @property
    def chain_id(self) -> int:
        return CHAIN_IDS[self]

    @classmethod
    def parse(cls, value: Any) -> "Chain":
        if isinstance(value, Chain):
            return value
        if not isinstance(value, str):
            raise UnsupportedChainError(value)
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise UnsupportedChainError(value) from None


CHAIN_IDS: dict[Chain, int] = {
    Chain.ETH: 1,
    Chain.ARBITRUM: 42161,
    Chain.BASE: 8453,
}

DEFAULT_RPC_URLS: dict[Chain, str] = {
    Chain.ETH: "https://eth.merkle.io",
    Chain.ARBITRUM: "https://arb1.arbitrum.io/rpc",
    Chain.BASE: "https://mainnet.base.org",
}


# ---------------------------------------------------------------------------
# Nonce keys (EIP-7582)
# ---------------------------------------------------------------------------

NONCE_SEQUENCE_BITS = 64


def nonce_key(nonce: int) -> int:
    """Return the 192-bit key held in the top 24 bytes of ``nonce``."""
    return nonce >> NONCE_SEQUENCE_BITS


def validator_key(address: str) -> int:
    """Key that routes an operation to the validator at ``address``.

    The address occupies the high 20 bytes of the 24-byte key.
    """
    return int(address, 16) << 32


def format_key(key: int) -> str:
    return "0x" + key.to_bytes(32, "big").hex()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

EIP712_DOMAIN_ABI = [
    {
        "inputs": [],
        "name": "eip712Domain",
        "outputs": [
            {"internalType": "bytes1", "name": "fields", "type": "bytes1"},
            {"internalType": "string", "name": "name", "type": "string"},
            {"internalType": "string", "name": "version", "type": "string"},
            {"internalType": "uint256", "name": "chainId", "type": "uint256"},
            {"internalType": "address", "name": "verifyingContract", "type": "address"},
            {"internalType": "bytes32", "name": "salt", "type": "bytes32"},
            {"internalType": "uint256[]", "name": "extensions", "type": "uint256[]"},
        ],
        "stateMutability": "view",
        "type": "function",
    }
]

REMOTE_VALIDATOR_DOMAIN_NAME = "RemoteValidator"
REMOTE_VALIDATOR_DOMAIN_VERSION = "1.0.0"


def make_web3(rpc_url: str, timeout: float) -> Web3:
    return Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


class DomainResolver:
    """Resolve (account, chain, nonce) to the EIP-712 signing domain."""

    def __init__(
        self,
        registry: ValidatorRegistry,
        rpc_urls: Optional[Mapping[str, str]] = None,
        timeout: float = 15.0,
        web3_factory: Callable[[str, float], Any] = make_web3,
    ):
        self._registry = registry
        self._timeout = timeout
        self._web3_factory = web3_factory
        self._rpc_urls = dict(DEFAULT_RPC_URLS)
        for name, url in (rpc_urls or {}).items():
            try:
                self._rpc_urls[Chain(name)] = url
            except ValueError:
                raise ConfigurationError(f"RPC URL configured for unknown chain '{name}'") from None

    def rpc_url(self, chain: Chain) -> str:
        return self._rpc_urls[chain]

    def read_domain(self, account: str, chain: Chain) -> Domain:
        """Call eip712Domain() on ``account``."""
        url = self.rpc_url(chain)
        try:
            web3 = self._web3_factory(url, self._timeout)
            contract = web3.eth.contract(
                address=Web3.to_checksum_address(account), abi=EIP712_DOMAIN_ABI,
            )
            data = contract.functions.eip712Domain().call()
        except Exception as exc:
            raise DomainResolutionError(
                f"eip712Domain() failed for {account} on {chain.value}: {exc}"
            ) from exc

        return Domain(
            name=data[1],
            version=data[2],
            chain_id=int(data[3]),
            verifying_contract=data[4],
        )

    def override_for(self, nonce: int, chain: Chain) -> Optional[Domain]:
        """Return the validator domain if the nonce key selects one.

        Only the remote validator is checked; other non-zero keys fall
        back to the account's own domain.
        """
        key = nonce_key(nonce)
        if key == 0:
            return None
        remote = self._registry.get(REMOTE_VALIDATOR_ID)
        if remote is None:
            logger.warning("Nonce key %s set but no %s registered",
                           format_key(key), REMOTE_VALIDATOR_ID)
            return None
        if key != validator_key(remote.address):
            logger.info("Nonce key %s does not match %s; using account domain",
                        format_key(key), REMOTE_VALIDATOR_ID)
            return None
        return Domain(
            name=REMOTE_VALIDATOR_DOMAIN_NAME,
            version=REMOTE_VALIDATOR_DOMAIN_VERSION,
            chain_id=chain.chain_id,
            verifying_contract=Web3.to_checksum_address(remote.address),
        )

    def resolve(self, account: str, chain: Any, nonce: int = 0) -> Domain:
        chain = Chain.parse(chain)
        domain = self.read_domain(account, chain)
        override = self.override_for(nonce, chain)
        if override is not None:
            logger.info("Using %s domain for %s", REMOTE_VALIDATOR_ID, account)
            return override
        return domain
