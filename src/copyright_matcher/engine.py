"""
Match Engine
============

Orchestrates one scan: original and candidate media are fetched, sampled
and reduced to signals, then aligned, compared, fused and persisted.

Scan Flow:
    fetch(original) -> sample -> extract ─┐
                                          ├─> align -> compare -> fuse -> CopyrightMatch
    fetch(candidate) -> sample -> extract ┘

Outcomes:
    - CopyrightMatch (possibly low confidence), persisted on creation
    - Unavailable with role "original" or "candidate"; in-flight work for
      the other side is cancelled. Never a score-0 match.

RateLimitedError is not handled here; it escapes so the job worker can
schedule a retry.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

import duckdb

from copyright_matcher.config import FusionConfig
from copyright_matcher.errors import SourceUnavailableError
from copyright_matcher.extractors.pipeline import SignalExtractionPipeline
from copyright_matcher.matching.fusion import MatchClassifier
from copyright_matcher.media.fetcher import MediaFetcher
from copyright_matcher.media.sampler import FrameSampler
from copyright_matcher.models.frames import FrameSignals
from copyright_matcher.models.match import CopyrightMatch, Unavailable
from copyright_matcher.storage import repository


logger = logging.getLogger(__name__)

# Host suffix -> platform label
PLATFORM_HOSTS = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "tiktok.com": "tiktok",
    "instagram.com": "instagram",
    "facebook.com": "facebook",
    "fb.watch": "facebook",
    "bilibili.com": "bilibili",
    "sharechat.com": "sharechat",
    "mojapp.in": "moj",
    "x.com": "x",
    "twitter.com": "x",
}


def infer_platform(url: str) -> str:
    """Platform label for a candidate URL, "other" when unknown."""
    host = (urlparse(url).hostname or "").lower()
    for suffix, platform in PLATFORM_HOSTS.items():
        if host == suffix or host.endswith("." + suffix):
            return platform
    return "other"


class _SideUnavailable(Exception):
    """Internal signal carrying the Unavailable outcome of one side."""

    def __init__(self, outcome: Unavailable) -> None:
        super().__init__(outcome.reason)
        self.outcome = outcome


class MatchEngine:
    """
    Copyright scan orchestrator.

    Attributes:
        default_intervals: Sampling intervals used when a scan names none

    Example:
        engine = MatchEngine(fetcher, sampler, pipeline, settings.fusion, conn)
        result = await engine.scan("file:///originals/clip.mp4",
                                   "https://www.tiktok.com/@x/video/1")
        if isinstance(result, Unavailable):
            ...
    """

    def __init__(
        self,
        fetcher: MediaFetcher,
        sampler: FrameSampler,
        pipeline: SignalExtractionPipeline,
        fusion_config: FusionConfig,
        conn: duckdb.DuckDBPyConnection,
        default_intervals: Optional[Iterable[float]] = None,
    ) -> None:
        self._fetcher = fetcher
        self._sampler = sampler
        self._pipeline = pipeline
        self._classifier = MatchClassifier.from_config(fusion_config)
        self._conn = conn
        self.default_intervals: List[float] = list(default_intervals or [1.0, 2.0, 5.0])

        self._scans_total: int = 0
        self._matches_created: int = 0
        self._unavailable_count: int = 0

        logger.info(f"MatchEngine initialized: default_intervals={self.default_intervals}")

    async def scan(
        self,
        original_ref: str,
        candidate_url: str,
        intervals: Optional[Iterable[float]] = None,
        platform: Optional[str] = None,
    ) -> Union[CopyrightMatch, Unavailable]:
        """
        Compare a candidate URL against an original asset.

        Args:
            original_ref: Reference of the original media
            candidate_url: URL of the suspected copy
            intervals: Sampling intervals in seconds (default: engine's)
            platform: Candidate platform (default: inferred from the URL)

        Returns:
            Persisted CopyrightMatch, or Unavailable

        Raises:
            RateLimitedError: If a fetch or networked extractor was rate limited
        """
        self._scans_total += 1
        interval_list = list(intervals) if intervals else self.default_intervals
        logger.info(f"Scan started: original={original_ref}, candidate={candidate_url}")

        original_task = asyncio.create_task(
            self._signals_for(original_ref, interval_list, role="original")
        )
        candidate_task = asyncio.create_task(
            self._signals_for(candidate_url, interval_list, role="candidate")
        )
        try:
            original_signals, candidate_signals = await asyncio.gather(
                original_task, candidate_task
            )
        except _SideUnavailable as e:
            await _cancel(original_task, candidate_task)
            self._unavailable_count += 1
            logger.warning(
                f"Scan unavailable ({e.outcome.role}): {e.outcome.ref} - {e.outcome.reason}"
            )
            return e.outcome
        except BaseException:
            await _cancel(original_task, candidate_task)
            raise

        assessment = self._classifier.assess(original_signals, candidate_signals)
        breakdown = assessment.breakdown

        match = CopyrightMatch(
            id=str(uuid.uuid4()),
            original_ref=original_ref,
            candidate_url=candidate_url,
            platform=platform or infer_platform(candidate_url),
            similarity_score=assessment.similarity_score,
            data_quality=assessment.data_quality,
            aligned_pairs=assessment.aligned_pairs,
            keyframe_score=breakdown.keyframe_score,
            ocr_score=breakdown.ocr_score,
            face_score=breakdown.face_score,
            motion_score=breakdown.motion_score,
            is_match=assessment.is_match,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        repository.insert_match(self._conn, match)
        self._matches_created += 1

        logger.info(
            f"Scan complete: match={match.id}, similarity={match.similarity_score:.3f}, "
            f"quality={match.data_quality.value}, pairs={match.aligned_pairs}, "
            f"is_match={match.is_match}"
        )
        return match

    async def _signals_for(
        self,
        ref: str,
        intervals: List[float],
        role: str,
    ) -> Dict[float, List[FrameSignals]]:
        """Fetch, sample and extract one side of the scan."""
        media = await asyncio.to_thread(self._fetcher.fetch_media, ref)
        if isinstance(media, Unavailable):
            raise _SideUnavailable(Unavailable(ref=ref, reason=media.reason, role=role))

        samples = await asyncio.to_thread(self._sampler.sample, media, intervals)
        if isinstance(samples, Unavailable):
            raise _SideUnavailable(Unavailable(ref=ref, reason=samples.reason, role=role))

        try:
            return await self._pipeline.extract(samples)
        except SourceUnavailableError as e:
            raise _SideUnavailable(Unavailable(ref=ref, reason=e.reason, role=role))

    def get_metrics(self) -> dict:
        """Get engine metrics for observability."""
        return {
            "scans_total": self._scans_total,
            "matches_created": self._matches_created,
            "unavailable_count": self._unavailable_count,
            "sampler": self._sampler.get_metrics(),
            "pipeline": self._pipeline.get_metrics(),
        }


async def _cancel(*tasks: asyncio.Task) -> None:
    """Cancel unfinished tasks and wait for all of them to settle."""
    for task in tasks:
        if not task.done():
            task.cancel()
    # return_exceptions also retrieves failures of already finished tasks
    await asyncio.gather(*tasks, return_exceptions=True)


def create_engine(settings, conn: duckdb.DuckDBPyConnection) -> MatchEngine:
    """Create a MatchEngine wired from settings."""
    from copyright_matcher.extractors.pipeline import create_extraction_pipeline
    from copyright_matcher.media.fetcher import HttpMediaFetcher

    fetcher = HttpMediaFetcher(
        timeout_seconds=settings.fetch.timeout_seconds,
        max_attempts=settings.fetch.max_attempts,
        max_bytes=settings.fetch.max_bytes,
        user_agent=settings.fetch.user_agent,
    )
    sampler = FrameSampler(
        horizon_seconds=settings.sampler.horizon_seconds,
        thumbnail_max_width=settings.sampler.thumbnail_max_width,
    )
    return MatchEngine(
        fetcher=fetcher,
        sampler=sampler,
        pipeline=create_extraction_pipeline(settings),
        fusion_config=settings.fusion,
        conn=conn,
        default_intervals=settings.sampler.intervals,
    )
