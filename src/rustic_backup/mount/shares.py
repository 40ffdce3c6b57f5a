"""NFS share registry.

Maps the symbolic share names accepted in [mount].share to the server and
export path they live on. Pure lookup, no network access.
"""

from dataclasses import dataclass

from ..__util__ import AbortError

NAS_HOST = "nas.lan"

# Shares exported from the first volume of the NAS under their own name
_VOL1_SHARES = (
    "isos",
    "pictures",
    "movies",
    "videos",
    "backups",
    "owncloud",
    "lan-share",
    "repos",
    "documents",
)

SHARES: dict[str, tuple[str, str]] = {
    "new-backups": (NAS_HOST, "/mnt/vol2/backups"),
    "new-documents": ("documents.lan", "/documents"),
    **{name: (NAS_HOST, f"/mnt/vol1/{name}") for name in _VOL1_SHARES},
}


class UnknownShare(AbortError):
    """The configured share name is not in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"unknown share name: '{name}' "
            f"(known shares: {', '.join(known_shares())})"
        )


@dataclass(frozen=True)
class NfsShare:
    """A resolved NFS export."""

    name: str
    server: str
    export: str

    @property
    def source(self) -> str:
        """Device spec handed to mount, e.g. 'nas.lan:/mnt/vol2/backups'."""
        return f"{self.server}:{self.export}"


def known_shares() -> list[str]:
    return sorted(SHARES)


def resolve_share(name: str) -> NfsShare:
    """Resolve a symbolic share name.

    Raises:
        UnknownShare: If name is not registered
    """
    try:
        server, export = SHARES[name]
    except (KeyError, TypeError):
        raise UnknownShare(name) from None
    return NfsShare(name=name, server=server, export=export)
