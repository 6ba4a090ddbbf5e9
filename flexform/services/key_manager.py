from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from flexform.core.config import settings
from flexform.core.errors import DecryptionError, KeyManagerNotInitialized

_LOG = logging.getLogger("flexform.keys")

NONCE_BYTES = 12
KEY_BYTES = 32
ALGORITHM = "AES-GCM"
KEY_DERIVATION = "PBKDF2"


def derive_key(passphrase: str, *, salt: str | None = None, iterations: int | None = None) -> bytes:
    if not passphrase:
        raise ValueError("Passphrase is required")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=str(salt or settings.KEY_DERIVATION_SALT).encode("utf-8"),
        iterations=int(iterations or settings.KEY_DERIVATION_ITERATIONS),
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(key: bytes, plaintext: str) -> str:
    nonce = secrets.token_bytes(NONCE_BYTES)
    cipher = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + cipher).decode("ascii")


def decrypt(key: bytes, blob: str) -> str:
    try:
        raw = base64.b64decode(str(blob or "").encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise DecryptionError("Malformed encrypted value") from exc
    # 16-byte GCM tag follows the nonce even for an empty plaintext
    if len(raw) < NONCE_BYTES + 16:
        raise DecryptionError("Malformed encrypted value")
    nonce, cipher = raw[:NONCE_BYTES], raw[NONCE_BYTES:]
    try:
        plain = AESGCM(key).decrypt(nonce, cipher, None)
    except InvalidTag as exc:
        raise DecryptionError("Wrong password or tampered value") from exc
    return plain.decode("utf-8")


def lookup_hash(key: bytes, value: str) -> str:
    normalized = str(value or "").strip().lower()
    return hmac.new(key, normalized.encode("utf-8"), hashlib.sha256).hexdigest()


class KeyManager:
    def __init__(self):
        self._key: bytes | None = None

    @property
    def initialized(self) -> bool:
        return self._key is not None

    def initialize(self, passphrase: str) -> "KeyManager":
        self._key = derive_key(passphrase)
        _LOG.info("key manager initialized")
        return self

    def _require_key(self) -> bytes:
        if self._key is None:
            raise KeyManagerNotInitialized("Key manager not initialized")
        return self._key

    def encrypt_value(self, plaintext: str) -> str:
        return encrypt(self._require_key(), plaintext)

    def decrypt_value(self, blob: str) -> str:
        return decrypt(self._require_key(), blob)

    def hash_value(self, value: str) -> str:
        return lookup_hash(self._require_key(), value)


def encrypt_contact_columns(record: dict[str, Any], key_manager: KeyManager) -> list[str]:
    """Replace, in place, every string value containing ``@`` with
    ``<name>_encrypted`` and ``<name>_hash`` columns. Returns the names that
    were replaced, in record order.
    """
    names = [name for name, value in record.items() if isinstance(value, str) and "@" in value]
    for name in names:
        value = record.pop(name)
        record[f"{name}_encrypted"] = key_manager.encrypt_value(value)
        record[f"{name}_hash"] = key_manager.hash_value(value)
    return names


def generate_encrypted_config(service_key: str, passphrase: str) -> dict[str, Any]:
    manager = KeyManager().initialize(passphrase)
    return {
        "encrypted": True,
        "service_key": manager.encrypt_value(service_key),
        "algorithm": ALGORITHM,
        "key_derivation": KEY_DERIVATION,
        "hint": "Service key encrypted with master password",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def load_encrypted_service_key(config: dict[str, Any], passphrase: str | None) -> str:
    if not config.get("encrypted"):
        return str(config.get("service_key") or "")
    if not passphrase:
        raise DecryptionError("Master password required")
    return KeyManager().initialize(passphrase).decrypt_value(str(config.get("service_key") or ""))


class ServiceKeyUnlocker:
    """Holds the unlocked service key in memory until cleared."""

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = config
        self._service_key: str | None = None

    def _effective_config(self) -> dict[str, Any]:
        if self.config is not None:
            return self.config
        encrypted = str(settings.ENCRYPTED_SERVICE_KEY or "").strip()
        if encrypted:
            return {"encrypted": True, "service_key": encrypted}
        return {"encrypted": False, "service_key": settings.SUPABASE_SERVICE_KEY}

    def unlock(self, passphrase: str | None) -> str:
        if self._service_key is not None:
            return self._service_key
        try:
            self._service_key = load_encrypted_service_key(self._effective_config(), passphrase)
        except DecryptionError:
            _LOG.warning("service key unlock failed")
            raise
        _LOG.info("service key unlocked")
        return self._service_key

    def has_service_key(self) -> bool:
        return self._service_key is not None

    def clear_service_key(self) -> None:
        self._service_key = None
        _LOG.info("service key cleared from memory")


_cached_manager: KeyManager | None = None
_cached_unlocker: ServiceKeyUnlocker | None = None


def get_key_manager() -> KeyManager:
    global _cached_manager
    if _cached_manager is None:
        passphrase = str(settings.FLEXFORM_MASTER_PASSWORD or "").strip()
        if not passphrase:
            raise KeyManagerNotInitialized("FLEXFORM_MASTER_PASSWORD is not set")
        _cached_manager = KeyManager().initialize(passphrase)
    return _cached_manager


def get_service_key_unlocker() -> ServiceKeyUnlocker:
    global _cached_unlocker
    if _cached_unlocker is None:
        _cached_unlocker = ServiceKeyUnlocker()
    return _cached_unlocker


def reset_key_manager_for_tests() -> None:
    global _cached_manager, _cached_unlocker
    _cached_manager = None
    _cached_unlocker = None
