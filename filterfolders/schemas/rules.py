"""Schemas for Thunderbird filter rules (msgFilterRules.dat).

A rule is only representable when it moves mail into a folder; every other
rule kind is dropped by the parser before a model is built.
"""

from enum import IntFlag

from pydantic import BaseModel, Field


class TriggerMask(IntFlag):
    """Bits of a filter's ``type="N"`` field (when the filter runs)."""

    NEW_MAIL = 1  # getting new mail, before junk classification
    NEW_MAIL_AFTER_JUNK = 2
    MANUAL = 16
    AFTER_SENDING = 32
    ARCHIVING = 64
    PERIODIC = 128


DEFAULT_FILTER_TYPE = int(TriggerMask.MANUAL | TriggerMask.NEW_MAIL)  # 17


def effective_mask(mask: int) -> int:
    """Return ``mask``, or the default when no bit is set."""
    return mask if mask else DEFAULT_FILTER_TYPE


class FilterTypeOptions(BaseModel):
    """Boolean trigger choices, as offered by the preferences."""

    manual: bool = False
    new_mail: bool = False
    after_sending: bool = False
    archiving: bool = False
    periodic: bool = False


def calculate_type(options: FilterTypeOptions) -> int:
    """Fold trigger choices into a type bitmask.

    Nothing selected yields ``MANUAL | NEW_MAIL`` so a generated rule is
    never left without a trigger.
    """
    mask = TriggerMask(0)
    if options.new_mail:
        mask |= TriggerMask.NEW_MAIL
    if options.manual:
        mask |= TriggerMask.MANUAL
    if options.after_sending:
        mask |= TriggerMask.AFTER_SENDING
    if options.archiving:
        mask |= TriggerMask.ARCHIVING
    if options.periodic:
        mask |= TriggerMask.PERIODIC
    return effective_mask(int(mask))


class Rule(BaseModel):
    """A parsed "Move to folder" filter rule."""

    name: str = ""
    path: str = Field(description="Clean target folder path, case preserved")
    emails: list[str] = Field(default_factory=list)  # lower-cased, from-conditions
    uri: str
    enabled: bool = False
    type_mask: int = DEFAULT_FILTER_TYPE


class DiscoveredSender(BaseModel):
    """A sender found in a mail folder, with its proposed target path."""

    email: str
    path: str
    selected: bool = True


class DiscoveryResult(BaseModel):
    """Pipeline result for sender discovery."""

    folder_id: str
    root: str = ""
    scanned: int = 0  # unique senders before filtering out known ones
    senders: list[DiscoveredSender] = Field(default_factory=list)


class GeneratedRules(BaseModel):
    """Rule text rendered for discovered senders."""

    base_uri: str
    text: str = ""
    count: int = 0
    mismatch: tuple[str, str] | None = None  # (account URI, rules URI)
