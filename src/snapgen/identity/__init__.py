"""Read-only lookup of the system user and group databases."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from .models import GROUP_FIELDS, USER_FIELDS, GroupRecord, UserRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_PASSWD_PATH = Path("/etc/passwd")
DEFAULT_GROUP_PATH = Path("/etc/group")


def parse_passwd(text: str) -> dict[int, UserRecord]:
    """Parse ``passwd(5)`` formatted text into records keyed by uid.

    Blank lines, comments and malformed lines are skipped. When a uid occurs
    more than once the first entry wins, matching ``getpwuid``.
    """
    users: dict[int, UserRecord] = {}
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        fields = line.split(":")
        if len(fields) < 7:
            LOGGER.debug("Skipping malformed passwd line: %r", line)
            continue
        username, _, uid, gid, gecos, homedir, shell = fields[:7]
        try:
            record = UserRecord(
                uid=int(uid),
                username=username,
                gid=int(gid),
                gecos=gecos,
                homedir=homedir,
                shell=shell,
            )
        except ValueError:
            LOGGER.debug("Skipping passwd line with non-numeric ids: %r", line)
            continue
        users.setdefault(record.uid, record)
    return users


def parse_group(text: str) -> dict[int, GroupRecord]:
    """Parse ``group(5)`` formatted text into records keyed by gid."""
    groups: dict[int, GroupRecord] = {}
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        fields = line.split(":")
        if len(fields) < 4:
            LOGGER.debug("Skipping malformed group line: %r", line)
            continue
        groupname, _, gid, members = fields[:4]
        try:
            record = GroupRecord(
                gid=int(gid),
                groupname=groupname,
                members=[member for member in members.split(",") if member],
            )
        except ValueError:
            LOGGER.debug("Skipping group line with non-numeric gid: %r", line)
            continue
        groups.setdefault(record.gid, record)
    return groups


def _read_optional(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        LOGGER.warning("Cannot load %s: %s", path, exc)
        return ""


class IdentityDirectory:
    """Immutable uid and gid lookup, loaded once and passed to the pipeline."""

    def __init__(
        self,
        users: Mapping[int, UserRecord] | Iterable[UserRecord] = (),
        groups: Mapping[int, GroupRecord] | Iterable[GroupRecord] = (),
    ) -> None:
        if isinstance(users, Mapping):
            users = users.values()
        if isinstance(groups, Mapping):
            groups = groups.values()
        self._users = {user.uid: user for user in users}
        self._groups = {group.gid: group for group in groups}

    @classmethod
    def from_files(
        cls,
        passwd_path: Path = DEFAULT_PASSWD_PATH,
        group_path: Path = DEFAULT_GROUP_PATH,
    ) -> "IdentityDirectory":
        """Load the user and group databases; unreadable files count as empty."""
        return cls(
            parse_passwd(_read_optional(passwd_path)),
            parse_group(_read_optional(group_path)),
        )

    def __len__(self) -> int:
        return len(self._users) + len(self._groups)

    def user(self, uid: int) -> UserRecord | None:
        """Return the user with ``uid`` if known."""
        return self._users.get(uid)

    def group(self, gid: int) -> GroupRecord | None:
        """Return the group with ``gid`` if known."""
        return self._groups.get(gid)

    def username(self, uid: int) -> str | None:
        user = self.user(uid)
        return user.username if user else None

    def groupname(self, gid: int) -> str | None:
        group = self.group(gid)
        return group.groupname if group else None

    def users_in_group(self, gid: int) -> list[UserRecord]:
        """Return users whose primary group is ``gid`` or who are listed as members."""
        group = self.group(gid)
        if group is None:
            return []
        members = set(group.members)
        return [
            user
            for user in sorted(self._users.values(), key=lambda item: item.uid)
            if user.gid == gid or user.username in members
        ]

    def resolve(
        self, uids: Iterable[int], gids: Iterable[int]
    ) -> tuple[list[UserRecord], list[GroupRecord]]:
        """Return records for the referenced IDs, with placeholders for unknown ones.

        Args:
            uids: Owner IDs observed during a scan.
            gids: Group IDs observed during a scan.

        Returns:
            tuple[list[UserRecord], list[GroupRecord]]: Records sorted by ID.
        """
        users = [self._users.get(uid) or UserRecord.placeholder(uid) for uid in sorted(set(uids))]
        groups = [
            self._groups.get(gid) or GroupRecord.placeholder(gid) for gid in sorted(set(gids))
        ]
        return users, groups


__all__ = [
    "DEFAULT_GROUP_PATH",
    "DEFAULT_PASSWD_PATH",
    "GROUP_FIELDS",
    "USER_FIELDS",
    "GroupRecord",
    "IdentityDirectory",
    "UserRecord",
    "parse_group",
    "parse_passwd",
]
