"""Carga de identidades del validador desde archivos de solana-keygen.

Formato: JSON con una lista de 64 enteros (seed Ed25519 de 32 bytes seguida de
la clave pública de 32 bytes). Solo se necesita la pública, en base58.
"""

from __future__ import annotations

import json
from pathlib import Path

import base58
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

from core.config import IdentitiesSettings
from core.domain.errors import ConfigError


def public_key_from_keypair_bytes(secret: bytes) -> str:
    if len(secret) != 64:
        raise ValueError(f"expected 64-byte keypair, got {len(secret)} bytes")
    seed, embedded_public = secret[:32], secret[32:]
    try:
        derived = bytes(SigningKey(seed).verify_key)
    except CryptoError as exc:
        raise ValueError(f"invalid ed25519 seed: {exc}") from exc
    if derived != embedded_public:
        raise ValueError("keypair public half does not match its seed")
    return base58.b58encode(derived).decode("ascii")


def load_public_key(path: Path) -> str:
    """Lee un keypair de solana-keygen y devuelve su pubkey base58."""

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed to load keypair from {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"failed to load keypair from {path}: invalid JSON ({exc})") from exc

    if not isinstance(raw, list) or not all(isinstance(b, int) and 0 <= b <= 255 for b in raw):
        raise ConfigError(f"failed to load keypair from {path}: expected a JSON list of bytes")
    try:
        return public_key_from_keypair_bytes(bytes(raw))
    except ValueError as exc:
        raise ConfigError(f"failed to load keypair from {path}: {exc}") from exc


def validate_public_key(value: str) -> str:
    """Valida una pubkey literal (base58, 32 bytes)."""

    candidate = value.strip()
    try:
        decoded = base58.b58decode(candidate)
    except ValueError as exc:
        raise ConfigError(f"invalid base58 public key {value!r}") from exc
    if len(decoded) != 32:
        raise ConfigError(f"public key {value!r} must decode to 32 bytes, got {len(decoded)}")
    return candidate


def resolve_identity_keys(identities: IdentitiesSettings) -> tuple[str | None, str | None]:
    """Devuelve (activa, pasiva) como pubkeys base58; `None` si el rol no está configurado."""

    def _one(path: Path | None, pubkey: str | None) -> str | None:
        if path is not None:
            return load_public_key(path)
        if pubkey:
            return validate_public_key(pubkey)
        return None

    active = _one(identities.active, identities.active_pubkey)
    passive = _one(identities.passive, identities.passive_pubkey)
    if active is not None and active == passive:
        raise ConfigError("validator active and passive identities resolve to the same public key")
    return active, passive
