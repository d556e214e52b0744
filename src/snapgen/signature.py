"""Deterministic content signature over a persisted snapshot.

The signature covers the ``entries``, ``users`` and ``groups`` relations. Rows
are read in primary-key order (entry paths by UTF-8 byte value, identities by
numeric ID), so the result does not depend on traversal or insertion order.

Encoding, schema ``snapgen-signature/1``:

* the digest is seeded with ``b"snapgen-signature/1\\n"``;
* each relation starts with ``\\x00`` + upper-case table name + ``\\x00``;
* each row is a compact JSON array of its columns in the pinned field order,
  UTF-8 encoded and terminated by ``\\n``. Integers are JSON integers and
  missing values are ``null``.

Changing any of these rules requires a new schema tag.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Iterable, Sequence

from snapgen.store.errors import StoreError

if TYPE_CHECKING:
    from snapgen.store import SnapshotStore

LOGGER = logging.getLogger(__name__)

SIGNATURE_SCHEMA = "snapgen-signature/1"
SIGNED_TABLES = ("entries", "users", "groups")


class SignatureError(Exception):
    """Raised when the snapshot signature cannot be computed."""


def encode_row(values: Sequence[object]) -> bytes:
    """Return the canonical byte encoding of one row."""
    for value in values:
        if isinstance(value, float):
            raise SignatureError(f"Refusing to sign non-integer number {value!r}")
    text = json.dumps(list(values), ensure_ascii=False, separators=(",", ":"))
    return text.encode("utf-8") + b"\n"


class SignatureComputer:
    """Fold persisted rows into a single SHA-256 signature."""

    schema = SIGNATURE_SCHEMA

    def compute(self, store: "SnapshotStore") -> str:
        """Return the hex signature of the rows committed to ``store``.

        Raises:
            SignatureError: If the rows cannot be read or encoded.
        """
        try:
            return self.compute_rows((table, store.iter_rows(table)) for table in SIGNED_TABLES)
        except StoreError as exc:
            raise SignatureError(f"Cannot read snapshot rows: {exc}") from exc

    def compute_rows(
        self, tables: Iterable[tuple[str, Iterable[Sequence[object]]]]
    ) -> str:
        """Return the signature of already ordered ``(table, rows)`` pairs."""
        digest = hashlib.sha256()
        digest.update(self.schema.encode("ascii") + b"\n")
        for table, rows in tables:
            digest.update(b"\x00" + table.upper().encode("ascii") + b"\x00")
            count = 0
            for row in rows:
                try:
                    digest.update(encode_row(row))
                except (TypeError, ValueError) as exc:
                    raise SignatureError(f"Cannot encode {table} row {row!r}: {exc}") from exc
                count += 1
            LOGGER.debug("Signed %d %s row(s)", count, table)
        return digest.hexdigest()


__all__ = ["SIGNATURE_SCHEMA", "SIGNED_TABLES", "SignatureComputer", "SignatureError", "encode_row"]
