"""DuckDB schema for matches, actions and the activity log."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS copyright_matches (
            id               VARCHAR PRIMARY KEY,
            original_ref     VARCHAR NOT NULL,
            candidate_url    VARCHAR NOT NULL,
            platform         VARCHAR NOT NULL,
            similarity_score DOUBLE NOT NULL,
            data_quality     VARCHAR NOT NULL,
            aligned_pairs    INTEGER NOT NULL,
            keyframe_score   DOUBLE NOT NULL,
            ocr_score        DOUBLE NOT NULL,
            face_score       DOUBLE NOT NULL,
            motion_score     DOUBLE NOT NULL,
            is_match         BOOLEAN NOT NULL,
            created_at       TIMESTAMP NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_matches_original ON copyright_matches(original_ref)"
    )

    # Actions are append-only; seq orders them when created_at collides
    conn.execute("CREATE SEQUENCE IF NOT EXISTS copyright_actions_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS copyright_actions (
            id           VARCHAR PRIMARY KEY,
            seq          BIGINT NOT NULL DEFAULT nextval('copyright_actions_seq'),
            match_id     VARCHAR NOT NULL,
            action_type  VARCHAR NOT NULL,
            status       VARCHAR NOT NULL,
            document_url VARCHAR,
            automated    BOOLEAN NOT NULL DEFAULT FALSE,
            created_at   TIMESTAMP NOT NULL,
            FOREIGN KEY (match_id) REFERENCES copyright_matches(id)
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_actions_match ON copyright_actions(match_id)"
    )

    conn.execute("CREATE SEQUENCE IF NOT EXISTS activity_log_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS activity_log (
            id          BIGINT PRIMARY KEY DEFAULT nextval('activity_log_seq'),
            match_id    VARCHAR NOT NULL,
            action_id   VARCHAR,
            event       VARCHAR NOT NULL,
            detail      VARCHAR,
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
