"""The mail-host capability consumed by the folder engine.

Everything that talks to a real mail store goes through :class:`MailHost`,
passed explicitly into each operation. Tests substitute an in-memory fake.
"""

from typing import Protocol

from filterfolders.schemas.folders import Account, FolderNode, MessageHeader


class HostError(Exception):
    """Raised by a host when a folder operation fails."""


class FolderExistsError(HostError):
    """Raised by ``create_folder`` when the folder is already there.

    ``folder`` carries the existing node when the host knows it.
    """

    def __init__(self, message: str, *, folder: FolderNode | None = None) -> None:
        super().__init__(message)
        self.folder = folder


class MailHost(Protocol):
    """Async account/folder/message API of a mail client."""

    async def list_accounts(self) -> list[Account]: ...

    async def get_account(self, account_id: str) -> Account | None: ...

    async def get_folder(self, folder_id: str) -> FolderNode | None: ...

    async def get_sub_folders(self, folder_id: str) -> list[FolderNode]: ...

    async def create_folder(self, parent_id: str, name: str) -> FolderNode: ...

    async def list_messages(self, folder_id: str, limit: int = 0) -> list[MessageHeader]: ...
