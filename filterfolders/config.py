"""Single source of truth for configuration and credentials.

All modules import from here, never from os.environ directly.

Values come from ``secrets/filterfolders.env`` (or its SOPS-encrypted
``.env.enc`` twin when FILTERFOLDERS_USE_SOPS=true); process environment
variables override the file.
"""

import os
from pathlib import Path

from pydantic import ValidationError

from filterfolders.schemas.config import ImapAccountConfig, Preferences
from filterfolders.secrets import load_encrypted_env, load_plain_env

PROJECT_ROOT = Path(__file__).resolve().parent.parent

USE_SOPS = os.environ.get("FILTERFOLDERS_USE_SOPS", "false").lower() == "true"
ENV_PATH = Path(
    os.environ.get("FILTERFOLDERS_ENV", str(PROJECT_ROOT / "secrets" / "filterfolders.env"))
)


class ConfigError(Exception):
    """Raised when configuration values are missing or invalid."""


def _load() -> dict[str, str | None]:
    if USE_SOPS:
        return load_encrypted_env(ENV_PATH.with_name(ENV_PATH.name + ".enc"))
    return load_plain_env(ENV_PATH)


_values = _load()


def _get(key: str, default: str = "") -> str:
    value = os.environ.get(key)
    if value is None:
        value = _values.get(key)
    return default if value is None else value


def _flag(key: str, default: bool) -> bool:
    return _get(key, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


# --- IMAP account ---
IMAP_ACCOUNT_NAME: str = _get("IMAP_ACCOUNT_NAME", "default")
IMAP_SERVER: str = _get("IMAP_SERVER")
IMAP_EMAIL: str = _get("IMAP_EMAIL")
IMAP_PASSWORD: str = _get("IMAP_PASSWORD")
IMAP_PORT: str = _get("IMAP_PORT", "993")
IMAP_SSL: bool = _flag("IMAP_SSL", True)

# --- Preferences ---
MERGE_CASE: bool = _flag("MERGE_CASE", True)
SCAN_LIMIT: str = _get("SCAN_LIMIT", "500")
DEFAULT_ROOT: str = _get("DEFAULT_ROOT")
FILTER_MANUAL: bool = _flag("FILTER_MANUAL", True)
FILTER_NEW_MAIL: bool = _flag("FILTER_NEW_MAIL", True)
FILTER_SENDING: bool = _flag("FILTER_SENDING", False)
FILTER_ARCHIVE: bool = _flag("FILTER_ARCHIVE", False)
FILTER_PERIODIC: bool = _flag("FILTER_PERIODIC", False)

# --- Audit ---
AUDIT_LOG_PATH: str = _get("AUDIT_LOG_PATH", str(PROJECT_ROOT / "data" / "creation_audit.jsonl"))


def load_account_config() -> ImapAccountConfig:
    """Build the IMAP account settings.

    Raises:
        ConfigError: If a required value is missing or malformed.
    """
    missing = [
        key
        for key, value in (
            ("IMAP_SERVER", IMAP_SERVER),
            ("IMAP_EMAIL", IMAP_EMAIL),
            ("IMAP_PASSWORD", IMAP_PASSWORD),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing required config: {', '.join(missing)}")
    try:
        return ImapAccountConfig(
            name=IMAP_ACCOUNT_NAME,
            server=IMAP_SERVER,
            email=IMAP_EMAIL,
            password=IMAP_PASSWORD,
            port=IMAP_PORT,
            ssl=IMAP_SSL,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid IMAP config: {exc}") from exc


def load_preferences() -> Preferences:
    """Build the filing preferences.

    Raises:
        ConfigError: If a value is out of range (e.g. SCAN_LIMIT).
    """
    try:
        return Preferences(
            merge_case=MERGE_CASE,
            scan_limit=SCAN_LIMIT,
            default_root=DEFAULT_ROOT,
            filter_manual=FILTER_MANUAL,
            filter_new_mail=FILTER_NEW_MAIL,
            filter_sending=FILTER_SENDING,
            filter_archive=FILTER_ARCHIVE,
            filter_periodic=FILTER_PERIODIC,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid preferences: {exc}") from exc
