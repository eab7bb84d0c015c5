"""Loading of dotenv files, plain or SOPS-encrypted, for the config module."""

import subprocess
from io import StringIO
from pathlib import Path

from dotenv import dotenv_values


def load_encrypted_env(encrypted_path: str | Path) -> dict[str, str | None]:
    """Decrypt a SOPS-encrypted .env file and return its key-value pairs.

    Raises:
        FileNotFoundError: If the encrypted file does not exist.
        subprocess.CalledProcessError: If SOPS decryption fails.
    """
    path = Path(encrypted_path)
    if not path.exists():
        raise FileNotFoundError(f"Encrypted env file not found: {path}")

    result = subprocess.run(
        ["sops", "--decrypt", "--input-type", "dotenv", "--output-type", "dotenv", str(path)],
        capture_output=True,
        text=True,
        check=True,
    )
    return dict(dotenv_values(stream=StringIO(result.stdout)))


def load_plain_env(dotenv_path: str | Path) -> dict[str, str | None]:
    """Load a plain .env file; a missing file yields no values."""
    path = Path(dotenv_path)
    if not path.exists():
        return {}
    return dict(dotenv_values(path))
