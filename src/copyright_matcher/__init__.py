"""
Copyright Matcher
=================

Content-matching engine deciding whether a candidate upload is a
re-upload or derivative of an original work.

Components:
    - media: Fetching, decoding and frame sampling
    - extractors: Keyframe hash, on-screen text, faces and motion per frame
    - matching: Pure comparators, timestamp alignment, weighted fusion
    - engine: The scan orchestrator
    - actions: Append-only enforcement workflow
    - storage: DuckDB persistence
    - jobs: Reusable queue and retrying worker

Example:
    from copyright_matcher.config import settings
    from copyright_matcher.engine import create_engine
    from copyright_matcher.storage import get_connection

    engine = create_engine(settings, get_connection(settings.storage.db_path))
    result = asyncio.run(engine.scan(original_ref, candidate_url))
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
