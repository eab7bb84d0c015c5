"""Configuration schemas: the IMAP account and the user's filing preferences."""

from pydantic import BaseModel, Field

from filterfolders.schemas.rules import FilterTypeOptions, calculate_type

MIN_SCAN_LIMIT = 100
MAX_SCAN_LIMIT = 5000


class ImapAccountConfig(BaseModel):
    """Connection settings for a single IMAP account."""

    name: str
    server: str
    email: str
    password: str
    port: int = 993
    ssl: bool = True


class Preferences(BaseModel):
    """Behaviour toggles for analysis, discovery and rule generation."""

    merge_case: bool = True
    scan_limit: int = Field(default=500, ge=MIN_SCAN_LIMIT, le=MAX_SCAN_LIMIT)
    default_root: str = ""
    filter_manual: bool = True
    filter_new_mail: bool = True
    filter_sending: bool = False
    filter_archive: bool = False
    filter_periodic: bool = False

    def filter_type_options(self) -> FilterTypeOptions:
        return FilterTypeOptions(
            manual=self.filter_manual,
            new_mail=self.filter_new_mail,
            after_sending=self.filter_sending,
            archiving=self.filter_archive,
            periodic=self.filter_periodic,
        )

    @property
    def type_mask(self) -> int:
        return calculate_type(self.filter_type_options())
