"""Parser for Thunderbird filter rule files (msgFilterRules.dat).

The file is a header (``version="9"``, ``logging="no"``) followed by blocks of
``key="value"`` lines, each block starting at a ``name=`` line::

    name="From bob@example.com"
    enabled="yes"
    type="17"
    action="Move to folder"
    actionValue="imap://me@imap.example.com/INBOX/com/example/bob"
    condition="AND (from,contains,bob@example.com)"

Only "Move to folder" rules are interpreted; other blocks are skipped.
"""

import logging
import re

from filterfolders.rules.paths import uri_to_path
from filterfolders.schemas.rules import DEFAULT_FILTER_TYPE, Rule

logger = logging.getLogger(__name__)

# Zero-width split: the name= marker stays at the head of its block.
RULE_START = re.compile(r"^(?=name=)", re.MULTILINE)

_ACTION_URI = re.compile(r'action="Move to folder"[\s\S]*?actionValue="([^"]+)"')
_FROM_CONDITION = re.compile(
    r"\(from\s*,\s*(?:contains|is)\s*,\s*([^)]+)\)", re.IGNORECASE
)
_RULE_NAME = re.compile(r'^name="(.*)"\s*$', re.MULTILINE)
_RULE_TYPE = re.compile(r'^type="(\d+)"', re.MULTILINE)
_ENABLED_MARKER = 'enabled="yes"'


def split_rule_blocks(text: str) -> tuple[str, list[str]]:
    """Split rule text into ``(header, blocks)``.

    The header is everything before the first ``name=`` line, verbatim.
    """
    if not text:
        return "", []
    chunks = RULE_START.split(text)
    header, blocks = chunks[0], chunks[1:]
    if header.startswith("name="):
        header, blocks = "", chunks
    return header, [block for block in blocks if block]


def extract_uri_from_block(block: str) -> str | None:
    """Return the target URI of the block's "Move to folder" action."""
    match = _ACTION_URI.search(block)
    return match.group(1) if match else None


def extract_path_from_block(block: str) -> str | None:
    uri = extract_uri_from_block(block)
    return uri_to_path(uri) if uri else None


def _normalize_condition_value(raw: str) -> str:
    value = raw.strip()
    value = re.sub(r'^\\?"', "", value)
    value = re.sub(r'\\?"$', "", value)
    return value.strip().lower()


def extract_emails(block: str) -> list[str]:
    """Collect addresses from every ``(from, contains|is, value)`` clause."""
    emails = []
    for match in _FROM_CONDITION.finditer(block):
        value = _normalize_condition_value(match.group(1))
        if "@" in value:
            emails.append(value)
    return emails


def parse_block(block: str) -> Rule | None:
    """Parse one rule block; ``None`` when it does not move mail to a folder."""
    uri = extract_uri_from_block(block)
    path = uri_to_path(uri) if uri else None
    if not path:
        return None

    name_match = _RULE_NAME.search(block)
    type_match = _RULE_TYPE.search(block)
    return Rule(
        name=name_match.group(1) if name_match else "",
        path=path,
        emails=extract_emails(block),
        uri=uri,
        enabled=_ENABLED_MARKER in block,
        type_mask=int(type_match.group(1)) if type_match else DEFAULT_FILTER_TYPE,
    )


def parse_rules(text: str) -> list[Rule]:
    """Parse every "Move to folder" rule in ``text``, in file order."""
    _header, blocks = split_rule_blocks(text)
    rules = []
    for block in blocks:
        rule = parse_block(block)
        if rule is None:
            continue
        rules.append(rule)
    skipped = len(blocks) - len(rules)
    if skipped:
        logger.debug("Skipped %d rule block(s) without a folder move", skipped)
    return rules


def count_rules(text: str) -> int:
    return len(parse_rules(text))
