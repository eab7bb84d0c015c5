"""Pipeline handlers for folder creation, sender discovery and rule generation.

Each handler encapsulates a complete workflow over an open MailHost and
returns a typed result. The CLI calls these handlers.
"""

import asyncio
import logging
from collections.abc import Callable

from filterfolders.audit.creation_log import CreationAuditLog
from filterfolders.discovery.senders import infer_root, propose_senders, scan_folder_senders
from filterfolders.folders.creator import (
    AccountNotFoundError,
    FolderCreator,
    NoRootFolderError,
)
from filterfolders.folders.host import MailHost
from filterfolders.rules.generator import choose_base_uri, find_base_uri_mismatch, generate_rules
from filterfolders.rules.parser import parse_rules
from filterfolders.schemas.folders import CompleteEvent, CreationResults, ErrorEvent, FolderEvent
from filterfolders.schemas.rules import DiscoveredSender, DiscoveryResult, GeneratedRules

logger = logging.getLogger(__name__)


async def run_folder_creation(
    *,
    host: MailHost,
    account_id: str,
    paths: list[str],
    on_event: Callable[[FolderEvent], None] | None = None,
    stop: asyncio.Event | None = None,
    audit_log_path: str | None = None,
) -> CreationResults | None:
    """Create the given folder paths in an account.

    Flow:
    1. Snapshot the account's folder tree and pick the root folder.
    2. Create each path, parents first, emitting progress events.
    3. Record the batch in the audit log and emit the complete event.

    Args:
        host: An open MailHost.
        account_id: Account to create folders in.
        paths: Clean folder paths to ensure.
        on_event: Progress channel; receives every FolderEvent.
        stop: Cooperative cancellation signal, checked between paths.
        audit_log_path: Where to append the batch record (skipped if None).

    Returns:
        CreationResults, or None when the account cannot be used at all (an
        ErrorEvent is emitted in that case).
    """

    def _emit(event: FolderEvent) -> None:
        if on_event:
            on_event(event)

    try:
        creator = await FolderCreator.for_account(host, account_id)
    except (AccountNotFoundError, NoRootFolderError) as exc:
        logger.error("Cannot create folders in account %s: %s", account_id, exc)
        _emit(ErrorEvent(error=str(exc)))
        return None

    results = await creator.run(paths, on_event=on_event, stop=stop)

    if audit_log_path:
        CreationAuditLog(audit_log_path).log_batch(
            str(account_id), requested=len(paths), results=results
        )
    _emit(CompleteEvent(results=results))
    return results


async def run_sender_discovery(
    *,
    host: MailHost,
    folder_id: str,
    rules_text: str = "",
    root: str | None = None,
    limit: int = 500,
) -> DiscoveryResult:
    """Find senders in a folder that have no filing rule yet.

    When ``root`` is None it is inferred from the existing rules; an
    explicit empty string files senders at the top level.
    """
    rules = parse_rules(rules_text)
    if root is None:
        root = infer_root(rules) or ""
        if root:
            logger.info("Inferred root folder %s from %d rule(s)", root, len(rules))

    emails = await scan_folder_senders(host, folder_id, limit)
    senders = propose_senders(emails, rules, root)
    logger.info(
        "Discovered %d new sender(s) out of %d in folder %s", len(senders), len(emails), folder_id
    )
    return DiscoveryResult(
        folder_id=str(folder_id),
        root=root.rstrip("/"),
        scanned=len(emails),
        senders=senders,
    )


def build_sender_rules(
    rules_text: str,
    senders: list[DiscoveredSender],
    *,
    account_uri: str | None,
    type_mask: int,
    override_account: bool = False,
) -> GeneratedRules:
    """Render rules for the selected senders.

    The base URI comes from the existing rules unless they target another
    account and ``override_account`` is set.
    """
    mismatch = find_base_uri_mismatch(rules_text, account_uri)
    if mismatch:
        logger.warning(
            "Rules target %s but the selected account is %s", mismatch[1], mismatch[0]
        )
    base_uri = choose_base_uri(rules_text, account_uri, override=override_account)
    selected = [s for s in senders if s.selected]
    return GeneratedRules(
        base_uri=base_uri,
        text=generate_rules(base_uri, selected, type_mask),
        count=len(selected),
        mismatch=mismatch,
    )
