"""snapgen: forensic snapshots of directory trees stored in SQLite."""

from importlib import metadata


def __getattr__(name: str) -> str:
    if name != "__version__":
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    try:
        return metadata.version("snapgen")
    except metadata.PackageNotFoundError:
        return "0+unknown"


__all__ = ["__version__"]
