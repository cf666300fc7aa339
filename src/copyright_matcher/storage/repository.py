"""CRUD operations for matches, actions and activity in DuckDB."""

from typing import Optional

import duckdb

from copyright_matcher.models.match import (
    ActionStatus,
    ActionType,
    CopyrightAction,
    CopyrightMatch,
    DataQuality,
)
from copyright_matcher.storage.schema import ensure_schema


_MATCH_COLUMNS = """
    id, original_ref, candidate_url, platform, similarity_score, data_quality,
    aligned_pairs, keyframe_score, ocr_score, face_score, motion_score,
    is_match, created_at
"""

_ACTION_COLUMNS = """
    id, match_id, action_type, status, document_url, automated, created_at
"""


def get_connection(db_path: str = ":memory:") -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection with the schema in place."""
    conn = duckdb.connect(db_path)
    ensure_schema(conn)
    return conn


def insert_match(conn: duckdb.DuckDBPyConnection, match: CopyrightMatch) -> None:
    """Insert a match record. Matches are written once and never updated."""
    conn.execute(
        f"INSERT INTO copyright_matches ({_MATCH_COLUMNS}) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            match.id,
            match.original_ref,
            match.candidate_url,
            match.platform,
            match.similarity_score,
            match.data_quality.value,
            match.aligned_pairs,
            match.keyframe_score,
            match.ocr_score,
            match.face_score,
            match.motion_score,
            match.is_match,
            match.created_at,
        ],
    )


def get_match(conn: duckdb.DuckDBPyConnection, match_id: str) -> Optional[CopyrightMatch]:
    """Look up a match with its actions attached, most recent first."""
    row = conn.execute(
        f"SELECT {_MATCH_COLUMNS} FROM copyright_matches WHERE id = ?",
        [match_id],
    ).fetchone()
    if row is None:
        return None
    return _row_to_match(row, actions=list_actions(conn, match_id))


def list_matches(
    conn: duckdb.DuckDBPyConnection,
    original_ref: Optional[str] = None,
    limit: int = 100,
) -> list[CopyrightMatch]:
    """List matches, newest first, without their actions."""
    query = f"SELECT {_MATCH_COLUMNS} FROM copyright_matches WHERE 1=1"
    params: list = []
    if original_ref is not None:
        query += " AND original_ref = ?"
        params.append(original_ref)
    query += " ORDER BY created_at DESC LIMIT ?"
    params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_match(row) for row in rows]


def insert_action(conn: duckdb.DuckDBPyConnection, action: CopyrightAction) -> None:
    """Append an action. There is deliberately no update or delete."""
    conn.execute(
        f"INSERT INTO copyright_actions ({_ACTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            action.id,
            action.match_id,
            action.action_type.value,
            action.status.value,
            action.document_url,
            action.automated,
            action.created_at,
        ],
    )


def list_actions(conn: duckdb.DuckDBPyConnection, match_id: str) -> list[CopyrightAction]:
    """Actions for a match, most recent first."""
    rows = conn.execute(
        f"SELECT {_ACTION_COLUMNS} FROM copyright_actions "
        "WHERE match_id = ? ORDER BY seq DESC",
        [match_id],
    ).fetchall()
    return [_row_to_action(row) for row in rows]


def count_actions(conn: duckdb.DuckDBPyConnection, match_id: Optional[str] = None) -> int:
    query = "SELECT count(*) FROM copyright_actions"
    params: list = []
    if match_id is not None:
        query += " WHERE match_id = ?"
        params.append(match_id)
    return conn.execute(query, params).fetchone()[0]


def insert_activity(
    conn: duckdb.DuckDBPyConnection,
    match_id: str,
    event: str,
    action_id: Optional[str] = None,
    detail: Optional[str] = None,
) -> None:
    """Append an activity-log entry."""
    conn.execute(
        "INSERT INTO activity_log (match_id, action_id, event, detail) VALUES (?, ?, ?, ?)",
        [match_id, action_id, event, detail],
    )


def record_action(
    conn: duckdb.DuckDBPyConnection,
    action: CopyrightAction,
    event: str,
    detail: Optional[str] = None,
) -> None:
    """Append an action and its activity-log entry in one transaction."""
    conn.begin()
    try:
        insert_action(conn, action)
        insert_activity(
            conn,
            match_id=action.match_id,
            event=event,
            action_id=action.id,
            detail=detail,
        )
    except Exception:
        conn.rollback()
        raise
    conn.commit()


def list_activity(conn: duckdb.DuckDBPyConnection, match_id: str) -> list[dict]:
    """Activity-log entries for a match, oldest first."""
    rows = conn.execute(
        "SELECT action_id, event, detail, created_at FROM activity_log "
        "WHERE match_id = ? ORDER BY id",
        [match_id],
    ).fetchall()
    return [
        {"action_id": row[0], "event": row[1], "detail": row[2], "created_at": row[3]}
        for row in rows
    ]


def _row_to_match(row: tuple, actions: Optional[list[CopyrightAction]] = None) -> CopyrightMatch:
    """Convert a row in _MATCH_COLUMNS order to a CopyrightMatch."""
    return CopyrightMatch(
        id=row[0],
        original_ref=row[1],
        candidate_url=row[2],
        platform=row[3],
        similarity_score=row[4],
        data_quality=DataQuality(row[5]),
        aligned_pairs=row[6],
        keyframe_score=row[7],
        ocr_score=row[8],
        face_score=row[9],
        motion_score=row[10],
        is_match=row[11],
        created_at=row[12],
        actions=actions or [],
    )


def _row_to_action(row: tuple) -> CopyrightAction:
    """Convert a row in _ACTION_COLUMNS order to a CopyrightAction."""
    return CopyrightAction(
        id=row[0],
        match_id=row[1],
        action_type=ActionType(row[2]),
        status=ActionStatus(row[3]),
        document_url=row[4],
        automated=row[5],
        created_at=row[6],
    )
