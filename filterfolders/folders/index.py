"""Case-insensitive lookup of folders by clean path."""

from collections.abc import Iterable

from filterfolders.schemas.folders import FolderNode


class FolderIndex:
    """Maps lower-cased clean paths to folder nodes.

    Built fresh for each operation from a tree snapshot; the creator adds the
    folders it makes so later paths in the same batch can find them.

    Usage::

        index = FolderIndex.from_folders(scan.folders)
        parent = index.get("INBOX/Clients")
    """

    def __init__(self) -> None:
        self._nodes: dict[str, FolderNode] = {}

    @classmethod
    def from_folders(cls, folders: Iterable[FolderNode]) -> "FolderIndex":
        index = cls()
        for folder in folders:
            index.add(folder.clean_path, folder)
        return index

    @staticmethod
    def _key(path: str) -> str:
        return path.strip("/").lower()

    def add(self, path: str, node: FolderNode) -> None:
        self._nodes[self._key(path)] = node

    def get(self, path: str) -> FolderNode | None:
        return self._nodes.get(self._key(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self._key(path) in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def paths(self) -> list[str]:
        return list(self._nodes)
