"""
Pydantic models for the account provisioner.

These are thin, per-invocation views of OS user-database records:
- UserSpec: what the operator asked for
- ParentContext: what was discovered about the parent account
- AccountRecord: one live row of the user database
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class UserSpec(BaseModel):
    """Account requested on the command line.

    Attributes:
        username: Name of the account to create
        parent_username: Existing account whose SSH key and dotfiles seed the new one
        shell: Login shell (None means the configured default)
        groups: Supplementary groups, also accepted as a comma-separated string

    Example:
        >>> UserSpec(username="dev-alice", parent_username="john", groups="docker,wheel")
    """

    username: str
    parent_username: str
    shell: Optional[str] = None
    groups: set[str] = Field(default_factory=set)

    @field_validator("groups", mode="before")
    @classmethod
    def split_groups(cls, value):
        if value is None:
            return set()
        if isinstance(value, str):
            return {group.strip() for group in value.split(",") if group.strip()}
        return value

    def groups_csv(self) -> str:
        """Supplementary groups as the account tool expects them ("" for none)."""
        return ",".join(sorted(self.groups))


class ParentContext(BaseModel):
    """Parent account details discovered once per create."""

    home_directory: Path
    ssh_public_key_path: Path


class AccountRecord(BaseModel):
    """A user-database entry."""

    name: str
    uid: int
    gid: int
    home: Path
    shell: str = ""
