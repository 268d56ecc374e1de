"""Keyring-backed storage for process-level secrets.

Holds the secrets the sync process itself needs (the settings encryption
key and the trigger token) in the OS keychain, or any other backend
supported by keyring.  Per-organization source credentials live in the
database and are handled by :mod:`services.credential_service`.  The
``keyring`` import is lazy so the rest of the app works even if keyring
is not installed.
"""

import logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "daily-sync"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "CONFIG_ENCRYPTION_KEY",
        "CRON_SECRET",
    }
)


def get_credential(key: str) -> str | None:
    """Retrieve a secret from the keychain.

    Args:
        key: The secret name (e.g. ``"CONFIG_ENCRYPTION_KEY"``).

    Returns:
        The stored value, or ``None`` if not found or keyring
        is unavailable.
    """
    try:
        import keyring
    except ImportError:
        return None

    try:
        return keyring.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store a secret in the keychain.

    Only keys listed in :data:`CREDENTIAL_KEYS` are accepted.

    Returns:
        ``True`` if stored successfully, ``False`` otherwise.
    """
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to store non-credential key: %s", key)
        return False
    if not value or not value.strip():
        logger.warning("Attempted to store empty value for %s", key)
        return False

    try:
        import keyring
    except ImportError:
        logger.warning("keyring is not installed, cannot store %s", key)
        return False

    try:
        keyring.set_password(SERVICE_NAME, key, value)
        logger.info("Stored %s in keychain", key)
        return True
    except Exception:
        logger.warning("Failed to store %s in keychain", key, exc_info=True)
        return False


def delete_credential(key: str) -> bool:
    """Remove a secret from the keychain."""
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to delete non-credential key: %s", key)
        return False

    try:
        import keyring
    except ImportError:
        return False

    try:
        keyring.delete_password(SERVICE_NAME, key)
        logger.info("Deleted %s from keychain", key)
        return True
    except Exception:
        logger.debug("Failed to delete %s from keychain", key, exc_info=True)
        return False
