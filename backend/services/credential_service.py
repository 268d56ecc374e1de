"""Per-organization source settings, stored encrypted in the database.

Each row in ``org_settings`` holds a JSON object encrypted with AES-256-GCM
and serialized as ``iv:tag:ciphertext`` (all hex). The key is
``CONFIG_ENCRYPTION_KEY``: 32 bytes, hex-encoded.
"""

import json
import logging
import os
from typing import Any, Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import settings
from database import get_session_local
from integrations.exceptions import SettingsDecryptError
from models import OrgSetting

logger = logging.getLogger(__name__)

_IV_BYTES = 12
_TAG_BYTES = 16


def _load_key(key_hex: str) -> bytes:
    if not key_hex:
        raise SettingsDecryptError("CONFIG_ENCRYPTION_KEY not set")
    try:
        key = bytes.fromhex(key_hex)
    except ValueError as exc:
        raise SettingsDecryptError("CONFIG_ENCRYPTION_KEY is not valid hex") from exc
    if len(key) != 32:
        raise SettingsDecryptError(
            f"CONFIG_ENCRYPTION_KEY must be 32 bytes (64 hex chars), got {len(key)} bytes"
        )
    return key


def encrypt_value(plaintext: str, key_hex: str) -> str:
    """Encrypt a string into ``iv:tag:ciphertext`` hex form."""
    key = _load_key(key_hex)
    iv = os.urandom(_IV_BYTES)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_value(payload: str, key_hex: str) -> str:
    """Decrypt an ``iv:tag:ciphertext`` payload.

    Raises:
        SettingsDecryptError: If the payload is malformed, the key is
            wrong, or the data was tampered with.
    """
    key = _load_key(key_hex)
    parts = payload.split(":")
    if len(parts) != 3:
        raise SettingsDecryptError("Malformed encrypted payload")
    try:
        iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
    except ValueError as exc:
        raise SettingsDecryptError("Malformed encrypted payload") from exc
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError) as exc:
        raise SettingsDecryptError("Authentication tag mismatch") from exc
    return plaintext.decode("utf-8")


class CredentialsProvider:
    """Loads and stores per-organization source settings."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        encryption_key: str | None = None,
    ):
        self._session_factory = session_factory
        self._encryption_key = encryption_key

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            self._session_factory = get_session_local()
        return self._session_factory

    @property
    def encryption_key(self) -> str:
        if self._encryption_key is None:
            return settings.CONFIG_ENCRYPTION_KEY
        return self._encryption_key

    def get(self, org_id: int, source: str) -> dict[str, Any] | None:
        """Return the decoded settings for a source, or None if none are stored.

        Raises:
            SettingsDecryptError: If a row exists but cannot be decrypted
                or does not contain a JSON object.
        """
        with self.session_factory() as session:
            row = session.execute(
                select(OrgSetting).where(OrgSetting.org_id == org_id, OrgSetting.key == source)
            ).scalar_one_or_none()
            if row is None:
                return None
            payload = row.value

        plaintext = decrypt_value(payload, self.encryption_key)
        try:
            value = json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise SettingsDecryptError(f"Settings for '{source}' are not valid JSON") from exc
        if not isinstance(value, dict):
            raise SettingsDecryptError(f"Settings for '{source}' must be a JSON object")
        return value

    def set(self, org_id: int, source: str, value: dict[str, Any]) -> None:
        """Encrypt and store settings for a source, replacing any existing row."""
        payload = encrypt_value(json.dumps(value), self.encryption_key)
        with self.session_factory() as session:
            row = session.execute(
                select(OrgSetting).where(OrgSetting.org_id == org_id, OrgSetting.key == source)
            ).scalar_one_or_none()
            if row is None:
                session.add(OrgSetting(org_id=org_id, key=source, value=payload))
            else:
                row.value = payload
            session.commit()
        logger.info("Stored %s settings for org %s", source, org_id)

    def delete(self, org_id: int, source: str) -> bool:
        """Remove stored settings. Returns True if a row was deleted."""
        with self.session_factory() as session:
            row = session.execute(
                select(OrgSetting).where(OrgSetting.org_id == org_id, OrgSetting.key == source)
            ).scalar_one_or_none()
            if row is None:
                return False
            session.delete(row)
            session.commit()
        logger.info("Deleted %s settings for org %s", source, org_id)
        return True
