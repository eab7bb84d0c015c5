"""Discovery of correspondents to auto-file.

Scans a folder's recent messages for sender addresses, and proposes a
reverse-domain target path for each one that has no rule yet.
"""

import logging
import re
from collections import Counter
from collections.abc import Iterable

from filterfolders.folders.host import MailHost
from filterfolders.folders.tree import get_account
from filterfolders.rules.paths import PATH_SEPARATOR, email_to_path
from filterfolders.schemas.folders import Identity
from filterfolders.schemas.rules import DiscoveredSender, Rule

logger = logging.getLogger(__name__)

DEFAULT_SCAN_LIMIT = 500

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")
_QUOTES = re.compile(r"[\"']")


def extract_email(author: str | None) -> str | None:
    """Pull the address out of an author field (``"Name <a@b>"`` or ``a@b``)."""
    if not author:
        return None
    match = _ANGLE_ADDRESS.search(author)
    candidate = match.group(1) if match else author
    email = _QUOTES.sub("", candidate).strip().lower()
    if email.count("@") != 1:
        return None
    return email


async def get_senders(
    host: MailHost,
    folder_id: str,
    limit: int,
    self_identities: Iterable[Identity] = (),
) -> list[str]:
    """Unique sender addresses of a folder's most recent messages.

    The account's own identities are left out. Order is first seen.
    """
    message_limit = limit or DEFAULT_SCAN_LIMIT
    messages = await host.list_messages(str(folder_id), message_limit)
    self_emails = {i.email.lower() for i in self_identities if i.email}

    senders: dict[str, None] = {}
    for message in messages[:message_limit]:
        email = extract_email(message.author)
        if email is None or email in self_emails:
            continue
        senders.setdefault(email, None)

    logger.debug(
        "Found %d unique sender(s) in %d message(s) of folder %s",
        len(senders),
        min(len(messages), message_limit),
        folder_id,
    )
    return list(senders)


async def scan_folder_senders(host: MailHost, folder_id: str, limit: int) -> list[str]:
    """Senders of a folder, excluding its account's identities.

    Unknown folders or accounts yield an empty list.
    """
    folder = await host.get_folder(str(folder_id))
    if folder is None:
        logger.warning("Folder %s not found", folder_id)
        return []
    identities: list[Identity] = []
    if folder.account_id is not None:
        account = await get_account(host, folder.account_id)
        if account is None:
            return []
        identities = account.identities
    return await get_senders(host, folder_id, limit, identities)


def infer_root(rules: Iterable[Rule]) -> str | None:
    """Guess the common root folder under which rules file their senders.

    A rule votes for root ``R`` when its path is ``R/<reverse-domain of one of
    its emails>``. The root with most votes wins; ties go to the first seen.
    An empty string means senders are filed at the top level.
    """
    votes: Counter[str] = Counter()
    for rule in rules:
        path = rule.path.lower()
        for email in rule.emails:
            suffix = email_to_path(email)
            if not suffix:
                continue
            if path == suffix:
                votes[""] += 1
            # Suffix must start on a segment boundary: "Xcom/example/bob" is no vote.
            elif path.endswith(PATH_SEPARATOR + suffix):
                root = rule.path[: len(rule.path) - len(suffix)].rstrip(PATH_SEPARATOR)
                votes[root] += 1
    if not votes:
        return None
    root, _count = votes.most_common(1)[0]
    return root


def propose_senders(
    emails: Iterable[str],
    rules: Iterable[Rule],
    root: str | None,
) -> list[DiscoveredSender]:
    """Turn discovered addresses into target-path proposals.

    Addresses already covered by a rule are skipped.
    """
    known = {email for rule in rules for email in rule.emails}
    prefix = (root or "").rstrip(PATH_SEPARATOR)

    proposals = []
    for email in emails:
        if email in known:
            continue
        suffix = email_to_path(email)
        if suffix is None:
            continue
        path = f"{prefix}{PATH_SEPARATOR}{suffix}" if prefix else suffix
        proposals.append(DiscoveredSender(email=email, path=path, selected=True))
    return proposals
