"""Database module."""

from callflow.db.database import (
    close_database,
    get_db,
    in_transaction,
    init_database,
    read_snapshot,
    write_transaction,
)
from callflow.db.graph_store import GraphStore, graph_store

__all__ = [
    "get_db",
    "init_database",
    "close_database",
    "in_transaction",
    "read_snapshot",
    "write_transaction",
    "graph_store",
    "GraphStore",
]
