# src/aurumfox/crypto/wallet.py
from __future__ import annotations

"""Solana wallet identity helpers.

A wallet address is a base58-encoded 32-byte Ed25519 public key. The core
only checks syntax (is_valid_wallet_address). Signature checks are an
optional API-layer gate; see aurumfox.api.security.
"""

import base64
import json
import re
from typing import Any, Dict

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

Json = Dict[str, Any]

_WALLET_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")  # base58 (no 0,O,I,l)

PUBKEY_LEN = 32
SIGNATURE_LEN = 64


def wallet_pubkey_bytes(address: str) -> bytes:
    """Decode a wallet address to its 32 public-key bytes.

    Raises ValueError if the string is not a well-formed Solana address.
    """
    if not isinstance(address, str):
        raise ValueError("wallet address must be a string")
    s = address.strip()
    if s != address or not _WALLET_RE.match(s):
        raise ValueError("wallet address is not base58 of the expected length")
    raw = base58.b58decode(s)
    if len(raw) != PUBKEY_LEN:
        raise ValueError(f"wallet address decodes to {len(raw)} bytes, expected {PUBKEY_LEN}")
    return raw


def is_valid_wallet_address(address: Any) -> bool:
    try:
        wallet_pubkey_bytes(address)
        return True
    except ValueError:
        return False


def _decode_signature(sig: str) -> bytes:
    s = (sig or "").strip()
    if not s:
        raise ValueError("empty signature")
    # Wallet adapters emit base58; hex and base64 are accepted for tooling.
    try:
        raw = base58.b58decode(s)
        if len(raw) == SIGNATURE_LEN:
            return raw
    except ValueError:
        pass
    try:
        raw = bytes.fromhex(s)
        if len(raw) == SIGNATURE_LEN:
            return raw
    except ValueError:
        pass
    try:
        padding = "=" * (-len(s) % 4)
        raw = base64.b64decode((s + padding).replace("-", "+").replace("_", "/"), validate=True)
        if len(raw) == SIGNATURE_LEN:
            return raw
    except ValueError:
        pass
    raise ValueError("signature is not a 64-byte base58, hex or base64 value")


def canonical_action_message(action: str, fields: Json) -> bytes:
    """Bytes a wallet signs to authorize `action` with `fields`."""
    obj: Json = {"action": str(action), "fields": fields if isinstance(fields, dict) else {}}
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_wallet_signature(*, wallet_address: str, message: bytes, signature: str) -> bool:
    try:
        pk = wallet_pubkey_bytes(wallet_address)
        sig_b = _decode_signature(signature)
        Ed25519PublicKey.from_public_bytes(pk).verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


__all__ = [
    "canonical_action_message",
    "is_valid_wallet_address",
    "verify_wallet_signature",
    "wallet_pubkey_bytes",
]
