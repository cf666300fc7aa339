"""
Test Configuration
==================

Pytest fixtures and helpers for copyright-matcher.

No test touches the network or downloads a model: media comes from
synthetic numpy frames, fetchers and extractors are stubs.
"""

from datetime import datetime
from typing import Dict, Optional, Union

import cv2
import numpy as np
import pytest

from copyright_matcher.media.fetcher import MediaBlob
from copyright_matcher.media.sampler import SampleSet
from copyright_matcher.models.frames import FrameSample
from copyright_matcher.models.match import CopyrightMatch, DataQuality, Unavailable


def textured_frame(seed: int, width: int = 160, height: int = 120) -> np.ndarray:
    """Smooth random BGR texture; different seeds look unrelated."""
    rng = np.random.default_rng(seed)
    grid = rng.integers(0, 256, size=(12, 16, 3), dtype=np.uint8)
    return cv2.resize(grid, (width, height), interpolation=cv2.INTER_CUBIC)


def png_bytes(frame: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", frame)
    assert ok
    return encoded.tobytes()


def make_sample_set(
    ref: str,
    sequences: Dict[float, list],
    duration: Optional[float] = None,
) -> SampleSet:
    """
    Build a SampleSet from {interval: [(timestamp, frame), ...]}.
    """
    built = {
        interval: tuple(
            FrameSample(timestamp=t, interval=interval, thumbnail=frame)
            for t, frame in samples
        )
        for interval, samples in sequences.items()
    }
    if duration is None:
        duration = max((t for samples in sequences.values() for t, _ in samples), default=0.0)
    return SampleSet(ref=ref, duration=duration, sequences=built)


class StubFetcher:
    """Fetcher serving canned blobs or Unavailable outcomes by reference."""

    def __init__(self, media: Dict[str, Union[bytes, Unavailable, Exception]]) -> None:
        self.media = media
        self.calls = []

    def fetch_media(self, ref: str) -> Union[MediaBlob, Unavailable]:
        self.calls.append(ref)
        value = self.media.get(ref)
        if value is None:
            return Unavailable(ref=ref, reason="HTTP 404")
        if isinstance(value, Exception):
            raise value
        if isinstance(value, Unavailable):
            return value
        return MediaBlob(ref=ref, content=value)


class StubSampler:
    """Sampler returning a prepared SampleSet per reference."""

    def __init__(self, sample_sets: Dict[str, Union[SampleSet, Unavailable]]) -> None:
        self.sample_sets = sample_sets

    def sample(self, media, intervals):
        return self.sample_sets[media.ref]

    def get_metrics(self) -> dict:
        return {}


@pytest.fixture
def conn():
    """In-memory DuckDB connection with the schema in place."""
    from copyright_matcher.storage import get_connection

    connection = get_connection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def frame():
    return textured_frame(seed=1)


@pytest.fixture
def other_frame():
    return textured_frame(seed=2)


@pytest.fixture
def video_bytes(tmp_path):
    """Three-second 10 fps MJPG clip of drifting texture."""
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (160, 120))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    base = textured_frame(seed=7)
    for i in range(30):
        writer.write(np.roll(base, i, axis=1))
    writer.release()
    return path.read_bytes()


@pytest.fixture
def make_match(conn):
    """Insert a CopyrightMatch and return it."""
    from copyright_matcher.storage import insert_match

    counter = {"n": 0}

    def _make(**overrides) -> CopyrightMatch:
        counter["n"] += 1
        fields = dict(
            id=f"match-{counter['n']}",
            original_ref="file:///originals/dance.mp4",
            candidate_url="https://www.tiktok.com/@copycat/video/123",
            platform="tiktok",
            similarity_score=0.82,
            data_quality=DataQuality.VERIFIED,
            aligned_pairs=12,
            keyframe_score=0.9,
            ocr_score=0.7,
            face_score=0.8,
            motion_score=0.75,
            is_match=True,
            created_at=datetime(2024, 3, 1, 12, 0, 0),
        )
        fields.update(overrides)
        match = CopyrightMatch(**fields)
        insert_match(conn, match)
        return match

    return _make
