"""Conversions between folder URIs, clean paths and reverse-domain paths.

    imap://bob@mail.example.com/INBOX/Clients%20A  <->  INBOX/Clients A
    bob@mail.example.co.uk                          ->  uk/co/example/mail/bob

None of these functions raise on malformed input; they return ``None``.
"""

import re
from urllib.parse import quote, unquote

PATH_SEPARATOR = "/"
PLACEHOLDER_URI = "imap://REPLACE_ME"

# encodeURIComponent leaves these unescaped on top of alphanumerics and "-_.~"
_URI_SAFE = "!*'()"

_URI_TO_PATH = re.compile(r"^(?:imap|mailbox)://[^/]+(?:@[^/]+)?/(.+)$", re.DOTALL)
_URI_BASE = re.compile(r"^((?:imap|mailbox)://[^/]+)/")
_MOVE_ACTION_URI = re.compile(r'action="Move to folder"[\s\S]*?actionValue="([^"]+)"')


def clean_path(path: str) -> str:
    """Strip leading separators from a folder path."""
    return path.lstrip(PATH_SEPARATOR)


def path_segments(path: str) -> list[str]:
    return [part for part in path.split(PATH_SEPARATOR) if part]


def path_depth(path: str) -> int:
    return len(path_segments(path))


def uri_to_path(uri: str) -> str | None:
    """Decode the folder path of an ``imap://`` or ``mailbox://`` URI."""
    if not uri:
        return None
    match = _URI_TO_PATH.match(uri.strip())
    return unquote(match.group(1)) if match else None


def path_to_uri(base_uri: str, path: str) -> str:
    """Build a folder URI, encoding each path segment on its own."""
    encoded = PATH_SEPARATOR.join(
        quote(segment, safe=_URI_SAFE) for segment in path.split(PATH_SEPARATOR)
    )
    return f"{base_uri}/{encoded}"


def email_to_path(email: str) -> str | None:
    """Map an address to its reverse-domain path (``bob@foo.co.uk`` -> ``uk/co/foo/bob``)."""
    if not email:
        return None
    parts = email.strip().lower().split("@")
    if len(parts) != 2:
        return None
    user, domain = parts
    return PATH_SEPARATOR.join([*reversed(domain.split(".")), user])


def extract_base_uri(text: str) -> str:
    """Return ``scheme://authority`` of the first move-to-folder target in ``text``.

    Falls back to :data:`PLACEHOLDER_URI` when no rule moves mail.
    """
    if text:
        for match in _MOVE_ACTION_URI.finditer(text):
            base = _URI_BASE.match(match.group(1))
            if base:
                return base.group(1)
    return PLACEHOLDER_URI
