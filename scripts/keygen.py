#!/usr/bin/env python3
"""
Cosigner Development Key Generator

Generates a fresh secp256k1 signing key for the local signer and prints:
  - The private key (export as CREDENTIALS, store securely)
  - The signer address (the account must list it as an owner/validator)

Usage:  python scripts/keygen.py
"""

from __future__ import annotations

from eth_account import Account


def generate_key() -> tuple[str, str]:
    """Return (private_key_hex, address) for a new random key."""
    account = Account.create()
    return "0x" + bytes(account.key).hex(), account.address


def main():
    private_key, address = generate_key()

    print()
    print("=== Cosigner Signing Key ===")
    print()
    print(f"  Address:     {address}")
    print(f"  Private Key: {private_key}")
    print()
    print("--- Export before starting the gateway ---")
    print(f"export CREDENTIALS={private_key}")
    print()


if __name__ == "__main__":
    main()
