"""Async IMAP mail host wrapping imap-tools.

imap-tools is synchronous; every public method runs its IMAP work through
asyncio.to_thread(). One connection serves one account, so calls are
serialized with an asyncio.Lock even when the folder engine issues them
concurrently.

Folder ids are the server's full mailbox names (``INBOX.Clients.Acme``);
paths use ``/`` whatever the server's delimiter is (``/INBOX/Clients/Acme``).

Usage::

    async with ImapMailHost(account_config) as host:
        scan = await scan_account(host, host.account_id)
"""

import asyncio
import logging
from typing import NamedTuple

from imap_tools import AND, MailBox, MailboxLoginError, MailMessage
from imap_tools.errors import MailboxFolderCreateError

from filterfolders.folders.host import FolderExistsError, HostError
from filterfolders.schemas.config import ImapAccountConfig
from filterfolders.schemas.folders import Account, FolderNode, Identity, MessageHeader

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = "/"

# RFC 6154 special-use attributes -> folder type
_SPECIAL_USE = {
    "\\sent": "sent",
    "\\trash": "trash",
    "\\drafts": "drafts",
    "\\junk": "junk",
    "\\archive": "archives",
}


class _ImapFolder(NamedTuple):
    name: str
    delim: str
    flags: tuple[str, ...] = ()


def _folder_type(folder: _ImapFolder) -> str | None:
    if folder.name.upper() == "INBOX":
        return "inbox"
    for flag in folder.flags:
        folder_type = _SPECIAL_USE.get(flag.lower())
        if folder_type:
            return folder_type
    return None


def _to_node(folder: _ImapFolder, account_id: str) -> FolderNode:
    """Convert a server mailbox to a FolderNode."""
    segments = folder.name.split(folder.delim)
    return FolderNode(
        id=folder.name,
        name=segments[-1],
        path="/" + "/".join(segments),
        type=_folder_type(folder),
        account_id=account_id,
    )


def _author(msg: MailMessage) -> str:
    values = getattr(msg, "from_values", None)
    if values is not None and values.full:
        return values.full
    return msg.from_ or ""


def _is_already_exists(exc: Exception) -> bool:
    text = str(exc).lower()
    return "alreadyexists" in text or "already exists" in text


class ImapMailHost:
    """A :class:`~filterfolders.folders.host.MailHost` backed by one IMAP account."""

    def __init__(self, config: ImapAccountConfig) -> None:
        self._config = config
        self._mailbox: MailBox | None = None
        self._folders: list[_ImapFolder] | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "ImapMailHost":
        self._mailbox = await asyncio.to_thread(self._connect)
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._mailbox:
            await asyncio.to_thread(self._disconnect)
            self._mailbox = None
        self._folders = None

    def _connect(self) -> MailBox:
        """Connect and login (sync, called via to_thread)."""
        if self._config.ssl:
            mb = MailBox(self._config.server, port=self._config.port)
        else:
            from imap_tools import MailBoxUnencrypted

            mb = MailBoxUnencrypted(self._config.server, port=self._config.port)

        try:
            mb.login(self._config.email, self._config.password)
        except MailboxLoginError:
            logger.error("IMAP login failed for %s", self._config.email)
            raise

        logger.info("Connected to %s as %s", self._config.server, self._config.email)
        return mb

    def _disconnect(self) -> None:
        if self._mailbox:
            try:
                self._mailbox.logout()
            except Exception:
                logger.debug("Error during IMAP logout", exc_info=True)

    @property
    def mailbox(self) -> MailBox:
        if self._mailbox is None:
            raise RuntimeError("ImapMailHost is not connected. Use 'async with' context.")
        return self._mailbox

    @property
    def account_id(self) -> str:
        return self._config.name

    async def _run(self, fn, *args):
        async with self._lock:
            return await asyncio.to_thread(fn, *args)

    # --- Folder cache (sync helpers, call through _run) ---

    def _load_folders(self) -> list[_ImapFolder]:
        if self._folders is None:
            self._folders = [
                _ImapFolder(f.name, f.delim or DEFAULT_DELIMITER, tuple(f.flags))
                for f in self.mailbox.folder.list()
            ]
            logger.debug("Listed %d IMAP folder(s)", len(self._folders))
        return self._folders

    def _delimiter(self) -> str:
        folders = self._load_folders()
        return folders[0].delim if folders else DEFAULT_DELIMITER

    def _top_level(self) -> list[FolderNode]:
        return [
            _to_node(f, self.account_id)
            for f in self._load_folders()
            if f.delim not in f.name
        ]

    # --- Accounts ---

    async def _account(self) -> Account:
        folders = await self._run(self._top_level)
        # INBOX first so it is picked as the root for new top-level folders.
        folders.sort(key=lambda f: f.type != "inbox")
        return Account(
            id=self.account_id,
            name=self._config.name,
            type="imap",
            folders=folders,
            identities=[Identity(email=self._config.email)],
        )

    async def list_accounts(self) -> list[Account]:
        return [await self._account()]

    async def get_account(self, account_id: str) -> Account | None:
        if str(account_id) != self.account_id:
            return None
        return await self._account()

    # --- Folders ---

    async def get_folder(self, folder_id: str) -> FolderNode | None:
        def _get() -> FolderNode | None:
            for folder in self._load_folders():
                if folder.name == folder_id:
                    return _to_node(folder, self.account_id)
            return None

        return await self._run(_get)

    async def get_sub_folders(self, folder_id: str) -> list[FolderNode]:
        """Direct children of the mailbox named ``folder_id``."""

        def _children() -> list[FolderNode]:
            children = []
            for folder in self._load_folders():
                prefix = folder_id + folder.delim
                if folder.name.startswith(prefix) and folder.delim not in folder.name[len(prefix) :]:
                    children.append(_to_node(folder, self.account_id))
            return children

        return await self._run(_children)

    async def create_folder(self, parent_id: str, name: str) -> FolderNode:
        """Create ``name`` under ``parent_id``.

        Raises:
            FolderExistsError: If the mailbox already exists.
            HostError: If the server refuses the creation, or ``name`` contains
                the server's hierarchy delimiter.
        """

        def _create() -> FolderNode:
            delim = self._delimiter()
            if delim in name:
                raise HostError(f"Invalid folder name {name!r}: contains delimiter {delim!r}")
            full_name = f"{parent_id}{delim}{name}" if parent_id else name
            for folder in self._load_folders():
                if folder.name == full_name:
                    raise FolderExistsError(
                        f"Folder {full_name} already exists",
                        folder=_to_node(folder, self.account_id),
                    )
            try:
                self.mailbox.folder.create(full_name)
            except MailboxFolderCreateError as exc:
                if _is_already_exists(exc):
                    raise FolderExistsError(f"Folder {full_name} already exists") from exc
                raise HostError(f"Cannot create {full_name}: {exc}") from exc

            created = _ImapFolder(full_name, delim)
            self._load_folders().append(created)
            logger.info("Created IMAP folder: %s", full_name)
            return _to_node(created, self.account_id)

        return await self._run(_create)

    # --- Messages ---

    async def list_messages(self, folder_id: str, limit: int = 0) -> list[MessageHeader]:
        """Headers of a folder's messages, newest first.

        Args:
            folder_id: IMAP folder name.
            limit: Maximum number of messages (0 = all).
        """

        def _fetch() -> list[MessageHeader]:
            self.mailbox.folder.set(folder_id)
            msgs = self.mailbox.fetch(
                AND(all=True),
                headers_only=True,
                mark_seen=False,
                reverse=True,
                limit=limit if limit > 0 else None,
            )
            return [MessageHeader(author=_author(m)) for m in msgs]

        return await self._run(_fetch)
