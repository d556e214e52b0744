"""Side files written next to a snapshot database."""

from __future__ import annotations

from pathlib import Path

from snapgen.scan.hashing import DEFAULT_CHUNK_SIZE, file_digest

SIGNATURE_SUFFIX = ".sig"
CHECKSUM_SUFFIX = ".sha256"
SIGNATURE_HEADER = (
    "# Forensic Content Hash (SHA256)",
    "# This hash represents the data inside the database, not the file itself.",
    "# Calculated over the 'entries', 'users' and 'groups' tables in key order.",
)


def signature_path_for(db_path: Path) -> Path:
    return db_path.with_name(db_path.name + SIGNATURE_SUFFIX)


def checksum_path_for(db_path: Path) -> Path:
    return db_path.with_name(db_path.name + CHECKSUM_SUFFIX)


def write_signature_file(db_path: Path, signature: str) -> Path:
    """Write the content signature, preceded by an explanatory header."""
    path = signature_path_for(db_path)
    path.write_text("\n".join((*SIGNATURE_HEADER, signature)) + "\n", encoding="utf-8")
    return path


def read_signature_file(path: Path) -> str:
    """Return the signature stored in a ``.sig`` file.

    Raises:
        ValueError: If the file holds no signature line.
    """
    lines = [
        line.strip()
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.startswith("#")
    ]
    if not lines:
        raise ValueError(f"No signature found in {path}")
    return lines[-1]


def write_checksum_file(db_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> tuple[Path, str]:
    """Hash the database file and write a ``sha256sum -c`` compatible line.

    Returns:
        tuple[Path, str]: The checksum file and the digest it contains.

    Raises:
        OSError: If the database cannot be read or the checksum written.
    """
    digest = file_digest(db_path, chunk_size)
    path = checksum_path_for(db_path)
    path.write_text(f"{digest}  {db_path.name}\n", encoding="utf-8")
    return path, digest


__all__ = [
    "CHECKSUM_SUFFIX",
    "SIGNATURE_HEADER",
    "SIGNATURE_SUFFIX",
    "checksum_path_for",
    "read_signature_file",
    "signature_path_for",
    "write_checksum_file",
    "write_signature_file",
]
