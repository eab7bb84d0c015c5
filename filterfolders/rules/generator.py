"""Rendering and bulk rewriting of filter rule text.

Works on the raw text so that anything the parser does not model (headers,
non-move rules, unknown keys) passes through untouched.
"""

import logging
import re
from collections.abc import Iterable

from filterfolders.rules.parser import extract_path_from_block, split_rule_blocks
from filterfolders.rules.paths import PLACEHOLDER_URI, extract_base_uri, path_to_uri
from filterfolders.schemas.folders import Account
from filterfolders.schemas.rules import DiscoveredSender, effective_mask

logger = logging.getLogger(__name__)

_TYPE_FIELD = re.compile(r'\btype="\d+"')
_UNSORTABLE_KEY = "zzz"


def generate_block(base_uri: str, email: str, path: str, type_mask: int) -> str:
    """Render a single "Move to folder" rule for ``email``.

    Key order is fixed (name, enabled, type, action, actionValue, condition);
    Thunderbird reads the file positionally.
    """
    target = path_to_uri(base_uri, path)
    return (
        f'name="From {email}"\n'
        f'enabled="yes"\n'
        f'type="{effective_mask(type_mask)}"\n'
        f'action="Move to folder"\n'
        f'actionValue="{target}"\n'
        f'condition="AND (from,contains,{email})"'
    )


def generate_rules(
    base_uri: str, senders: Iterable[DiscoveredSender], type_mask: int
) -> str:
    """Render blocks for every selected sender, newline-joined."""
    blocks = [
        generate_block(base_uri, sender.email, sender.path, type_mask)
        for sender in senders
        if sender.selected
    ]
    return "\n".join(blocks)


def append_rules(text: str, generated: str) -> str:
    """Append generated blocks to an existing rule document."""
    if not generated:
        return text
    if not text:
        return generated if generated.endswith("\n") else generated + "\n"
    combined = text if text.endswith("\n") else text + "\n"
    combined += generated
    return combined if combined.endswith("\n") else combined + "\n"


def _sort_key(block: str) -> str:
    return (extract_path_from_block(block) or _UNSORTABLE_KEY).lower()


def sort_raw_rules(text: str) -> str:
    """Sort rule blocks by target folder path, keeping the header in place.

    Rules that do not move mail sort last.
    """
    header, blocks = split_rule_blocks(text)
    if not blocks:
        return text
    # A block without its own line ending would fuse with its new neighbour.
    blocks = [block if block.endswith("\n") else block + "\n" for block in blocks]
    blocks.sort(key=_sort_key)
    return header + "".join(blocks)


def update_filter_types(text: str, type_mask: int) -> str:
    """Rewrite the ``type`` of every rule in the document."""
    mask = effective_mask(type_mask)
    updated, count = _TYPE_FIELD.subn(f'type="{mask}"', text)
    logger.debug("Rewrote %d type field(s) to %d", count, mask)
    return updated


# --- Account base URI ---


def account_base_uri(account: Account | None) -> str:
    """``imap://<first identity email>`` for ``account``, else the placeholder."""
    if account is None or not account.identities:
        return PLACEHOLDER_URI
    return f"imap://{account.identities[0].email}"


def find_base_uri_mismatch(text: str, account_uri: str | None) -> tuple[str, str] | None:
    """Return ``(account_uri, rules_uri)`` when the rules target another account.

    Rules without a concrete base URI never mismatch.
    """
    if not text or not account_uri:
        return None
    rules_uri = extract_base_uri(text)
    if rules_uri == PLACEHOLDER_URI:
        return None
    if account_uri.lower() == rules_uri.lower():
        return None
    return account_uri, rules_uri


def choose_base_uri(text: str, account_uri: str | None, *, override: bool = False) -> str:
    """Pick the base URI for generated rules.

    The rules' own base URI wins unless ``override`` is set and it points at a
    different account than ``account_uri``.
    """
    mismatch = find_base_uri_mismatch(text, account_uri)
    if mismatch and override:
        logger.info("Overriding rules base URI %s with %s", mismatch[1], mismatch[0])
        return account_uri or PLACEHOLDER_URI
    rules_uri = extract_base_uri(text)
    if rules_uri != PLACEHOLDER_URI:
        return rules_uri
    return account_uri or PLACEHOLDER_URI
