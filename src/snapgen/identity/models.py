"""User and group identity records."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

USER_FIELDS = ("uid", "username", "gid", "gecos", "homedir", "shell")
GROUP_FIELDS = ("gid", "groupname", "members")


class UserRecord(BaseModel):
    """One account entry from the system user database."""

    model_config = ConfigDict(frozen=True)

    uid: int
    username: str
    gid: int | None = None
    gecos: str = ""
    homedir: str = ""
    shell: str = ""

    @classmethod
    def placeholder(cls, uid: int) -> "UserRecord":
        """Return a stand-in for an ID missing from the user database."""
        return cls(uid=uid, username=f"uid:{uid}")

    def as_row(self) -> tuple[object, ...]:
        return (self.uid, self.username, self.gid, self.gecos, self.homedir, self.shell)


class GroupRecord(BaseModel):
    """One group entry from the system group database."""

    model_config = ConfigDict(frozen=True)

    gid: int
    groupname: str
    members: List[str] = Field(default_factory=list)

    @classmethod
    def placeholder(cls, gid: int) -> "GroupRecord":
        """Return a stand-in for an ID missing from the group database."""
        return cls(gid=gid, groupname=f"gid:{gid}")

    def as_row(self) -> tuple[object, ...]:
        return (self.gid, self.groupname, ",".join(self.members))


__all__ = ["GROUP_FIELDS", "USER_FIELDS", "GroupRecord", "UserRecord"]
