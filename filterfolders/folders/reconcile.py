"""Diff of the rules' target paths against an account's folder tree."""

import logging
from collections.abc import Iterable

from filterfolders.folders.host import MailHost
from filterfolders.folders.tree import scan_account
from filterfolders.rules.parser import parse_rules
from filterfolders.schemas.folders import AnalysisResult, FolderNode
from filterfolders.schemas.rules import Rule

logger = logging.getLogger(__name__)


def unique_paths(rules: Iterable[Rule]) -> list[str]:
    """Target paths of ``rules``, deduplicated in first-seen order."""
    return list(dict.fromkeys(rule.path for rule in rules))


def diff_paths(
    required: list[str],
    existing: Iterable[FolderNode],
    *,
    merge_case: bool,
) -> list[str]:
    """Return the required paths that have no folder.

    With ``merge_case`` a folder differing only in case counts as present.
    ``required`` is expected to be deduplicated already (see :func:`unique_paths`).
    """
    existing_set = set()
    existing_lower = set()
    for folder in existing:
        existing_set.add(folder.clean_path)
        existing_lower.add(folder.clean_path.lower())

    missing = []
    for path in required:
        if path in existing_set:
            continue
        if merge_case and path.lower() in existing_lower:
            continue
        missing.append(path)
    return missing


async def analyze(
    host: MailHost,
    account_id: str,
    rules_text: str,
    *,
    merge_case: bool = True,
) -> AnalysisResult:
    """Parse rules and report which of their target folders are missing."""
    scan = await scan_account(host, account_id)
    rules = parse_rules(rules_text)
    required = unique_paths(rules)
    missing = diff_paths(required, scan.folders, merge_case=merge_case)
    logger.info(
        "Analyzed %d rule(s) against %d folder(s): %d of %d target path(s) missing",
        len(rules),
        scan.total,
        len(missing),
        len(required),
    )
    return AnalysisResult(
        account_id=str(account_id),
        total_rules=len(rules),
        total_leafs=len(required),
        missing=missing,
    )
