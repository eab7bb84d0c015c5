"""Schemas for folder trees, reconciliation and the creation batch.

Covers the full lifecycle:
  host folder tree -> index snapshot -> missing paths -> creation batch -> progress events
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, computed_field

# --- Host data ---


class FolderNode(BaseModel):
    """A folder as reported by the mail host."""

    id: str
    name: str
    path: str = ""
    depth: int = 0
    type: str | None = None  # "inbox", "sent", "trash", ... or None
    account_id: str | None = None

    @computed_field
    @property
    def clean_path(self) -> str:
        return self.path.lstrip("/")


class Identity(BaseModel):
    """A sending identity of an account."""

    email: str
    name: str = ""


class Account(BaseModel):
    """A mail account with its root folders."""

    id: str
    name: str
    type: str = "imap"
    folders: list[FolderNode] = Field(default_factory=list)
    identities: list[Identity] = Field(default_factory=list)


class MessageHeader(BaseModel):
    """The parts of a message header used for sender discovery."""

    author: str = ""


# --- Scan / analysis results ---


class FolderScan(BaseModel):
    """Flattened folder tree of an account."""

    folders: list[FolderNode] = Field(default_factory=list)
    total: int = 0
    leafs: int = 0


class AnalysisResult(BaseModel):
    """Outcome of diffing the rules' target paths against an account."""

    account_id: str
    total_rules: int = 0
    total_leafs: int = 0  # unique target paths
    missing: list[str] = Field(default_factory=list)


# --- Creation batch ---


class PathState(StrEnum):
    """Lifecycle of one top-level path in a creation batch."""

    PENDING = "pending"
    CREATING = "creating"
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class FailedPath(BaseModel):
    path: str
    error: str


class CreationResults(BaseModel):
    """Results of a creation batch.

    ``created`` holds every path that ended in success (newly created or
    already present); ``states`` tells the two apart.
    """

    created: list[str] = Field(default_factory=list)
    failed: list[FailedPath] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)
    states: dict[str, PathState] = Field(default_factory=dict)
    cancelled: bool = False

    def paths_in_state(self, state: PathState) -> list[str]:
        return [path for path, s in self.states.items() if s == state]


# --- Progress channel events ---


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    current: int
    total: int
    path: str


class FolderCompleteEvent(BaseModel):
    type: Literal["folderComplete"] = "folderComplete"
    path: str
    state: PathState = PathState.CREATED


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    results: CreationResults


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


FolderEvent = ProgressEvent | FolderCompleteEvent | CompleteEvent | ErrorEvent


# --- Audit ---


class CreationAuditEntry(BaseModel):
    """A record of one creation batch run against an account."""

    timestamp: datetime
    account_id: str
    requested: int = 0
    created: list[str] = Field(default_factory=list)
    already_existed: list[str] = Field(default_factory=list)
    failed: list[FailedPath] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)
    cancelled: bool = False
