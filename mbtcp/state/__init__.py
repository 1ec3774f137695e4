"""Server-side state: the shared, lock-protected data store."""

from mbtcp.state.data_store import DataStore, OutOfRange, Table

__all__ = ["DataStore", "OutOfRange", "Table"]
