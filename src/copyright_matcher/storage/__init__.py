"""
Storage Module
==============

DuckDB persistence for matches, actions and the activity log.
Actions are append-only: the repository offers no update or delete.
"""

from copyright_matcher.storage.schema import ensure_schema
from copyright_matcher.storage.repository import (
    count_actions,
    get_connection,
    get_match,
    insert_action,
    insert_activity,
    insert_match,
    list_actions,
    list_activity,
    list_matches,
    record_action,
)

__all__ = [
    "ensure_schema",
    "get_connection",
    "insert_match",
    "get_match",
    "list_matches",
    "insert_action",
    "list_actions",
    "count_actions",
    "insert_activity",
    "list_activity",
    "record_action",
]
