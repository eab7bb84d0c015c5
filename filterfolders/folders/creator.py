"""Hierarchical folder creation with partial-failure tolerance.

Each requested path is created segment by segment, parents first. Paths are
processed shallow to deep so a path can rely on ancestors created earlier in
the same batch. A failing path never aborts the batch:

    pending -> creating -> created | already_exists | failed

Creation is idempotent: a folder the host reports as already existing counts
as success, so an interrupted batch can simply be run again.
"""

import asyncio
import logging
from collections.abc import Callable

from filterfolders.folders.host import FolderExistsError, MailHost
from filterfolders.folders.index import FolderIndex
from filterfolders.folders.tree import find_inbox_folder, get_account, scan_account
from filterfolders.rules.paths import PATH_SEPARATOR, path_depth, path_segments
from filterfolders.schemas.folders import (
    CreationResults,
    FailedPath,
    FolderCompleteEvent,
    FolderEvent,
    FolderNode,
    PathState,
    ProgressEvent,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[FolderEvent], None]


class MissingParentError(Exception):
    """A segment's parent is neither in the tree nor created by this batch."""

    def __init__(self, parent_path: str) -> None:
        super().__init__(f"Missing parent: {parent_path}")
        self.parent_path = parent_path


class AccountNotFoundError(LookupError):
    """The account of a creation batch does not exist."""


class NoRootFolderError(LookupError):
    """The account has no inbox or root folder to create top-level folders in."""


def sort_paths_by_depth(paths: list[str]) -> list[str]:
    """Shallow paths first; equal depths keep their original order."""
    return sorted(paths, key=path_depth)


def get_parent_path(path: str) -> str | None:
    parts = path_segments(path)
    if len(parts) <= 1:
        return None
    return PATH_SEPARATOR.join(parts[:-1])


class FolderCreator:
    """Creates missing folder paths against one snapshot of an account's tree.

    Usage::

        creator = FolderCreator(host, index, root)
        results = await creator.run(["Archive/com/example/bob"], on_event=print)
    """

    def __init__(self, host: MailHost, index: FolderIndex, root: FolderNode) -> None:
        self._host = host
        self.index = index
        self.root = root

    @classmethod
    async def for_account(cls, host: MailHost, account_id: str) -> "FolderCreator":
        """Snapshot the account's tree once and pick the root for top-level folders.

        Raises:
            AccountNotFoundError: If the account does not exist.
            NoRootFolderError: If the account has no folders at all.
        """
        account = await get_account(host, account_id)
        if account is None:
            raise AccountNotFoundError(f"No account found: {account_id}")
        root = find_inbox_folder(account.folders)
        if root is None:
            raise NoRootFolderError("No inbox folder found")
        scan = await scan_account(host, account_id)
        return cls(host, FolderIndex.from_folders(scan.folders), root)

    async def run(
        self,
        paths: list[str],
        *,
        on_event: EventCallback | None = None,
        stop: asyncio.Event | None = None,
    ) -> CreationResults:
        """Create every path in ``paths``.

        Args:
            paths: Clean folder paths to ensure.
            on_event: Receives a progress event before and a completion event
                after each path. Errors raised by the callback are logged
                and do not stop the batch.
            stop: Checked between paths; once set, the remaining paths are left
                pending.

        Returns:
            CreationResults with created, failed and pending paths.
        """

        def _emit(event: FolderEvent) -> None:
            if not on_event:
                return
            try:
                on_event(event)
            except Exception:
                logger.exception("Event callback failed on %s event", event.type)

        ordered = sort_paths_by_depth(paths)
        results = CreationResults(states={path: PathState.PENDING for path in ordered})
        total = len(ordered)

        for i, path in enumerate(ordered, 1):
            if stop is not None and stop.is_set():
                results.pending = ordered[i - 1 :]
                results.cancelled = True
                logger.info("Creation stopped with %d path(s) pending", len(results.pending))
                break

            _emit(ProgressEvent(current=i, total=total, path=path))
            results.states[path] = PathState.CREATING
            try:
                state = await self.create_path(path)
            except Exception as exc:
                logger.warning("Failed to create %s: %s", path, exc)
                state = PathState.FAILED
                results.failed.append(FailedPath(path=path, error=str(exc)))
            else:
                results.created.append(path)
            results.states[path] = state
            _emit(FolderCompleteEvent(path=path, state=state))

        logger.info(
            "Creation batch done: %d succeeded, %d failed, %d pending",
            len(results.created),
            len(results.failed),
            len(results.pending),
        )
        return results

    async def create_path(self, path: str) -> PathState:
        """Create the missing segments of one path, parents first.

        Raises:
            MissingParentError: If a segment's parent cannot be resolved.
        """
        parts = path_segments(path)
        created_any = False
        for depth in range(len(parts)):
            current = PATH_SEPARATOR.join(parts[: depth + 1])
            if current in self.index:
                continue

            if depth == 0:
                parent = self.root
            else:
                parent_path = PATH_SEPARATOR.join(parts[:depth])
                parent = self.index.get(parent_path)
                if parent is None:
                    raise MissingParentError(parent_path)

            node, created = await self._create_segment(parent, parts[depth])
            created_any = created_any or created
            if node is not None:
                self._remember(current, node)

        return PathState.CREATED if created_any else PathState.ALREADY_EXISTS

    async def _create_segment(
        self, parent: FolderNode, name: str
    ) -> tuple[FolderNode | None, bool]:
        """Create ``name`` under ``parent``; returns ``(node, newly_created)``."""
        try:
            node = await self._host.create_folder(parent.id, name)
        except FolderExistsError as exc:
            logger.debug("Folder %s already exists under %s", name, parent.path or parent.id)
            return exc.folder or await self._find_child(parent, name), False
        logger.info("Created folder %s", node.clean_path or name)
        return node, True

    async def _find_child(self, parent: FolderNode, name: str) -> FolderNode | None:
        try:
            subs = await self._host.get_sub_folders(parent.id)
        except Exception:
            logger.debug("Cannot re-list subfolders of %s", parent.id, exc_info=True)
            return None
        lowered = name.lower()
        return next((s for s in subs if s.name.lower() == lowered), None)

    def _remember(self, current: str, node: FolderNode) -> None:
        self.index.add(current, node)
        if node.clean_path and node.clean_path.lower() != current.lower():
            self.index.add(node.clean_path, node)
