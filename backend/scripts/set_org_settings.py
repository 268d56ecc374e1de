#!/usr/bin/env python
"""Store encrypted source settings for an organization.

Settings are read as a JSON object from a file or stdin, encrypted with
CONFIG_ENCRYPTION_KEY and written to ``org_settings``.

Usage:
    python -m scripts.set_org_settings --generate-key
    python -m scripts.set_org_settings --org 42 --source facebook --file fb.json
    echo '{"api_key": "...", "project_id": "1"}' | python -m scripts.set_org_settings --org 42 --source posthog
    python -m scripts.set_org_settings --org 42 --source posthog --delete
"""

import argparse
import json
import secrets
import sys

from integrations.exceptions import SettingsDecryptError
from integrations.source_registry import ALL_SOURCE_NAMES
from services.credential_manager import set_credential
from services.credential_service import CredentialsProvider


def generate_key() -> str:
    """Return a new 32-byte key, hex encoded."""
    return secrets.token_hex(32)


def _offer_keychain_store(key: str) -> None:
    """Prompt the user to store the key in the OS keychain."""
    answer = input("\nStore CONFIG_ENCRYPTION_KEY in the keychain? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes"):
        if set_credential("CONFIG_ENCRYPTION_KEY", key):
            print("  Stored CONFIG_ENCRYPTION_KEY in keychain")
        else:
            print("  Failed to store CONFIG_ENCRYPTION_KEY")
    else:
        print("  Skipped keychain storage.")


def read_settings(path: str | None) -> dict:
    """Load a JSON object from ``path`` or stdin."""
    if path:
        with open(path, encoding="utf-8") as f:
            raw = f.read()
    else:
        raw = sys.stdin.read()
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError("Settings must be a JSON object")
    return value


def main(argv: list[str] | None = None, provider: CredentialsProvider | None = None) -> int:
    parser = argparse.ArgumentParser(description="Store encrypted source settings for an organization.")
    parser.add_argument("--generate-key", action="store_true", help="Print a new CONFIG_ENCRYPTION_KEY")
    parser.add_argument("--org", type=int, help="Organization id")
    parser.add_argument("--source", choices=ALL_SOURCE_NAMES, help="Source name")
    parser.add_argument("--file", help="JSON file with the settings (default: stdin)")
    parser.add_argument("--delete", action="store_true", help="Remove the stored settings")
    args = parser.parse_args(argv)

    if args.generate_key:
        key = generate_key()
        print(f"CONFIG_ENCRYPTION_KEY={key}")
        _offer_keychain_store(key)
        return 0

    if args.org is None or args.source is None:
        parser.error("--org and --source are required")

    provider = provider or CredentialsProvider()
    if args.delete:
        deleted = provider.delete(args.org, args.source)
        print(f"{'Deleted' if deleted else 'No'} {args.source} settings for org {args.org}")
        return 0

    try:
        value = read_settings(args.file)
        provider.set(args.org, args.source, value)
    except (OSError, ValueError, SettingsDecryptError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Stored {args.source} settings for org {args.org} ({', '.join(sorted(value))})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
