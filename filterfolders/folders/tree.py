"""Account lookup and folder-tree enumeration over a :class:`MailHost`.

Lookup misses are reported as ``None`` / empty results, never raised, so a
caller can show "no data" instead of failing.
"""

import asyncio
import logging

from filterfolders.folders.host import MailHost
from filterfolders.schemas.folders import Account, FolderNode, FolderScan

logger = logging.getLogger(__name__)

INBOX_FOLDER_NAME = "Inbox"


async def get_account(host: MailHost, account_id: str) -> Account | None:
    """Fetch an account, falling back to the account list when folders are missing."""
    try:
        account = await host.get_account(str(account_id))
        if account is None or not account.folders:
            accounts = await host.list_accounts()
            account = next((a for a in accounts if str(a.id) == str(account_id)), account)
        return account
    except Exception:
        logger.exception("Failed to get account details for %s", account_id)
        return None


async def list_imap_accounts(host: MailHost) -> list[Account]:
    try:
        accounts = await host.list_accounts()
    except Exception:
        logger.exception("Failed to list accounts")
        return []
    return [a for a in accounts if a.type == "imap"]


def root_folders(account: Account) -> list[FolderNode]:
    return list(account.folders)


def find_inbox_folder(folders: list[FolderNode]) -> FolderNode | None:
    """The inbox-equivalent root: first inbox-typed folder, else the first folder."""
    if not folders:
        return None
    for folder in folders:
        if folder.type == "inbox" or folder.name == INBOX_FOLDER_NAME:
            return folder
    return folders[0]


async def _fetch_children(host: MailHost, folder: FolderNode) -> list[FolderNode] | None:
    """Children of ``folder``; ``None`` when they cannot be listed."""
    try:
        return list(await host.get_sub_folders(folder.id))
    except Exception as exc:
        # Special folders may refuse listing; they count as leaves.
        logger.debug("Cannot list subfolders of %s: %s", folder.path or folder.id, exc)
        return None


async def scan_account(host: MailHost, account_id: str) -> FolderScan:
    """Enumerate every folder of an account, depth-first, with depths filled in.

    Sibling subtrees are listed concurrently, one tree level at a time; the
    flat result is then assembled in preorder with an explicit stack.
    """
    account = await get_account(host, account_id)
    if account is None:
        return FolderScan()

    roots = [f for f in root_folders(account) if f.id]
    if not roots:
        logger.warning("No root folders found for account %s", account_id)
        return FolderScan()

    children: dict[str, list[FolderNode]] = {}
    seen: set[str] = set()
    leafs = 0
    frontier = roots
    while frontier:
        frontier = [f for f in frontier if f.id not in seen]
        seen.update(f.id for f in frontier)
        listings = await asyncio.gather(*(_fetch_children(host, f) for f in frontier))
        next_frontier: list[FolderNode] = []
        for folder, subs in zip(frontier, listings):
            subs = [s for s in subs or [] if s.id]
            if not subs:
                leafs += 1
            children[folder.id] = subs
            next_frontier.extend(subs)
        frontier = next_frontier

    folders: list[FolderNode] = []
    stack = [(root, 0) for root in reversed(roots)]
    emitted: set[str] = set()
    while stack:
        folder, depth = stack.pop()
        if folder.id in emitted:
            continue
        emitted.add(folder.id)
        folders.append(folder.model_copy(update={"depth": depth}))
        stack.extend((sub, depth + 1) for sub in reversed(children.get(folder.id, [])))

    logger.info(
        "Scanned account %s: %d folder(s), %d leaf folder(s)", account_id, len(folders), leafs
    )
    return FolderScan(folders=folders, total=len(folders), leafs=leafs)
