"""Shared fixtures for filterfolders tests."""

import os

import pytest

# Config is read at import time; keep tests away from SOPS and any real env file.
os.environ.setdefault("FILTERFOLDERS_USE_SOPS", "false")
os.environ.setdefault(
    "FILTERFOLDERS_ENV",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "no-such-filterfolders.env"),
)

from filterfolders.folders.host import FolderExistsError, HostError  # noqa: E402
from filterfolders.schemas.folders import (  # noqa: E402
    Account,
    FolderNode,
    Identity,
    MessageHeader,
)


class FakeMailHost:
    """In-memory MailHost with a single account.

    Folder ids are slash paths ("INBOX/Clients"); ``INBOX`` always exists.

    Args:
        paths: Existing folders (ancestors are added automatically).
        hidden: Folders that exist but are not listed until a create hits them.
        forbidden: Folders whose subfolders cannot be listed.
        fail_on: Full path -> error message raised when creating it.
        messages: Folder id -> author strings, newest first.
    """

    def __init__(
        self,
        paths=(),
        *,
        account_id="acc1",
        identities=("me@example.com",),
        hidden=(),
        forbidden=(),
        fail_on=None,
        messages=None,
    ):
        self.account_id = account_id
        self.identities = [Identity(email=e) for e in identities]
        self._nodes: dict[str, FolderNode] = {}
        self._hidden: set[str] = set()
        self.forbidden = set(forbidden)
        self.fail_on = dict(fail_on or {})
        self.create_calls: list[str] = []
        self.messages = {
            folder: [MessageHeader(author=a) for a in authors]
            for folder, authors in (messages or {}).items()
        }
        for path in ("INBOX", *paths, *hidden):
            self._add(path)
        self._hidden = set(hidden)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    def _node(self, path: str) -> FolderNode:
        return FolderNode(
            id=path,
            name=path.rsplit("/", 1)[-1],
            path="/" + path,
            type="inbox" if path == "INBOX" else None,
            account_id=self.account_id,
        )

    def _add(self, path: str) -> FolderNode:
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            prefix = "/".join(parts[:i])
            if prefix not in self._nodes:
                self._nodes[prefix] = self._node(prefix)
        return self._nodes[path]

    def _visible(self, path: str) -> bool:
        return path not in self._hidden

    def exists(self, path: str) -> bool:
        return path in self._nodes

    async def list_accounts(self):
        roots = [n for p, n in self._nodes.items() if "/" not in p and self._visible(p)]
        return [
            Account(
                id=self.account_id,
                name="Fake",
                type="imap",
                folders=roots,
                identities=self.identities,
            )
        ]

    async def get_account(self, account_id):
        if account_id != self.account_id:
            return None
        return (await self.list_accounts())[0]

    async def get_folder(self, folder_id):
        if folder_id in self._nodes and self._visible(folder_id):
            return self._nodes[folder_id]
        return None

    async def get_sub_folders(self, folder_id):
        if folder_id in self.forbidden:
            raise PermissionError(f"Access denied: {folder_id}")
        prefix = folder_id + "/"
        return [
            node
            for path, node in self._nodes.items()
            if path.startswith(prefix)
            and "/" not in path[len(prefix) :]
            and self._visible(path)
        ]

    async def create_folder(self, parent_id, name):
        full = f"{parent_id}/{name}" if parent_id else name
        self.create_calls.append(full)
        if full in self.fail_on:
            raise HostError(self.fail_on[full])
        if full in self._hidden:
            self._hidden.discard(full)
            raise FolderExistsError(f"{full} already exists")
        if full in self._nodes:
            raise FolderExistsError(f"{full} already exists", folder=self._nodes[full])
        return self._add(full)

    async def list_messages(self, folder_id, limit=0):
        messages = self.messages.get(folder_id, [])
        return messages[:limit] if limit else list(messages)


@pytest.fixture()
def make_host():
    """Factory for in-memory mail hosts."""
    return FakeMailHost


@pytest.fixture()
def sample_rules():
    """A small msgFilterRules.dat with a header, three movers and one deleter."""
    return (
        'version="9"\n'
        'logging="no"\n'
        'name="From zed@zeta.org"\n'
        'enabled="yes"\n'
        'type="17"\n'
        'action="Move to folder"\n'
        'actionValue="imap://me%40example.com@imap.example.com/Archive/org/zeta/zed"\n'
        'condition="AND (from,contains,zed@zeta.org)"\n'
        'name="Delete spam"\n'
        'enabled="no"\n'
        'type="1"\n'
        'action="Delete"\n'
        'condition="AND (subject,contains,viagra)"\n'
        'name="From bob"\n'
        'enabled="yes"\n'
        'type="16"\n'
        'action="Move to folder"\n'
        'actionValue="imap://me@imap.example.com/Archive/com/example/bob"\n'
        'condition="OR (from,contains,Bob@Example.com) OR (FROM,is,\\"bobby@example.com\\")"\n'
        'name="Clients"\n'
        'enabled="yes"\n'
        'type="17"\n'
        'action="Move to folder"\n'
        'actionValue="imap://me@imap.example.com/INBOX/Clients%20A"\n'
        'condition="AND (subject,contains,invoice)"\n'
    )
