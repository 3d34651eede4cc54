"""Host environment adapters."""

from lark_md.platforms.snapshot import SnapshotClient, load_snapshot

__all__ = ["SnapshotClient", "load_snapshot"]
