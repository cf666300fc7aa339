"""
Signal Extraction Pipeline
==========================

Runs the four extractors over every sampled frame of a SampleSet.

Concurrency Model:
    - One task per (interval, frame); per-signal work runs in worker
      threads via asyncio.to_thread so CPU-bound extraction and blocking
      API calls never stall the event loop
    - Static signals (hash, text, faces) depend only on the pixels of one
      instant, so an instant shared by several intervals is extracted once
    - Motion depends on the previous sample of the same interval and is
      computed per (interval, timestamp)

Failure Handling:
    - A timeout or error in one signal degrades that signal to its empty
      value and is counted; the frame and the scan continue
    - RateLimitedError and SourceUnavailableError propagate; all in-flight
      frame tasks are cancelled first
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from copyright_matcher.errors import RateLimitedError, SourceUnavailableError
from copyright_matcher.extractors.base import (
    FaceExtractor,
    KeyframeHasher,
    MotionExtractor,
    TextExtractor,
)
from copyright_matcher.media.sampler import SampleSet
from copyright_matcher.models.frames import FrameSample, FrameSignals


logger = logging.getLogger(__name__)

# Errors that must abort the scan instead of degrading one signal
_PROPAGATED_ERRORS = (RateLimitedError, SourceUnavailableError)


class SignalExtractionPipeline:
    """
    Concurrent per-frame signal extraction.

    Attributes:
        timeouts: Per-signal timeout in seconds ("keyframe", "ocr", "face",
            "motion"); a missing entry means no timeout

    Example:
        pipeline = SignalExtractionPipeline(
            hasher=DifferenceHasher(),
            text_extractor=MockTextExtractor(),
            face_extractor=MockFaceExtractor(),
            motion_extractor=FarnebackMotionExtractor(),
        )
        signals = await pipeline.extract(sample_set)
        signals[1.0][0].keyframe_hash
    """

    def __init__(
        self,
        hasher: KeyframeHasher,
        text_extractor: TextExtractor,
        face_extractor: FaceExtractor,
        motion_extractor: MotionExtractor,
        timeouts: Optional[Dict[str, float]] = None,
    ) -> None:
        self._hasher = hasher
        self._text = text_extractor
        self._faces = face_extractor
        self._motion = motion_extractor
        self.timeouts = dict(timeouts or {})

        self._frames_extracted: int = 0
        self._timeouts: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, int] = defaultdict(int)

        logger.info(
            f"SignalExtractionPipeline initialized: "
            f"hasher={type(hasher).__name__}, text={type(text_extractor).__name__}, "
            f"faces={type(face_extractor).__name__}, "
            f"motion={type(motion_extractor).__name__}, timeouts={self.timeouts}"
        )

    async def extract(self, sample_set: SampleSet) -> Dict[float, List[FrameSignals]]:
        """
        Extract signals for every sample in the set.

        Args:
            sample_set: Sampled frames grouped by interval

        Returns:
            Interval -> FrameSignals in timestamp order

        Raises:
            RateLimitedError: If a networked extractor was rate limited
            SourceUnavailableError: If an extractor found the media unusable
        """
        static_tasks: Dict[float, asyncio.Task] = {}
        frame_tasks: List[Tuple[float, asyncio.Task]] = []

        for interval, samples in sorted(sample_set.sequences.items()):
            previous: Optional[FrameSample] = None
            for sample in samples:
                static = static_tasks.get(sample.timestamp)
                if static is None:
                    static = asyncio.create_task(self._extract_static(sample))
                    static_tasks[sample.timestamp] = static
                frame_tasks.append(
                    (interval, asyncio.create_task(self._extract_frame(previous, sample, static)))
                )
                previous = sample

        all_tasks = list(static_tasks.values()) + [task for _, task in frame_tasks]
        try:
            results = await asyncio.gather(*(task for _, task in frame_tasks))
        except BaseException:
            for task in all_tasks:
                task.cancel()
            # Let cancelled tasks settle so no "exception never retrieved" noise
            await asyncio.gather(*all_tasks, return_exceptions=True)
            raise

        signals: Dict[float, List[FrameSignals]] = {
            interval: [] for interval in sample_set.sequences
        }
        for (interval, _), frame_signals in zip(frame_tasks, results):
            signals[interval].append(frame_signals)

        self._frames_extracted += len(results)
        logger.debug(
            f"Extracted signals for {len(results)} samples "
            f"({len(static_tasks)} distinct instants) from {sample_set.ref}"
        )
        return signals

    async def _extract_static(self, sample: FrameSample) -> Tuple[str, frozenset, tuple]:
        """Hash, text and faces for one instant, concurrently."""
        return await asyncio.gather(
            self._run_signal("keyframe", "", self._hasher.extract, sample),
            self._run_signal("ocr", frozenset(), self._text.extract, sample),
            self._run_signal("face", (), self._faces.extract, sample),
        )

    async def _extract_frame(
        self,
        previous: Optional[FrameSample],
        sample: FrameSample,
        static: asyncio.Task,
    ) -> FrameSignals:
        motion = await self._run_signal("motion", None, self._motion.extract, previous, sample)
        keyframe_hash, ocr_tokens, faces = await asyncio.shield(static)

        return FrameSignals(
            timestamp=sample.timestamp,
            keyframe_hash=keyframe_hash,
            ocr_tokens=ocr_tokens,
            faces=faces,
            motion_vector=motion,
        )

    async def _run_signal(
        self,
        signal: str,
        empty: Any,
        func: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """
        Run one extractor call in a worker thread.

        Returns the extractor's value, or ``empty`` on timeout or failure.
        """
        timeout = self.timeouts.get(signal)
        timestamp = args[-1].timestamp

        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
        except _PROPAGATED_ERRORS:
            raise
        except asyncio.TimeoutError:
            self._timeouts[signal] += 1
            logger.warning(f"{signal} extraction timed out after {timeout}s (t={timestamp:.2f})")
            return empty
        except Exception as e:
            self._failures[signal] += 1
            logger.warning(f"{signal} extraction failed (t={timestamp:.2f}): {e}")
            return empty

    def get_metrics(self) -> dict:
        """Get extraction metrics for observability."""
        return {
            "frames_extracted": self._frames_extracted,
            "timeouts": dict(self._timeouts),
            "failures": dict(self._failures),
        }


def create_extraction_pipeline(settings) -> SignalExtractionPipeline:
    """
    Create the extraction pipeline from settings.

    Fails fast if a configured backend is unknown or not installed.
    """
    from copyright_matcher.extractors.faces import InsightFaceExtractor, MockFaceExtractor
    from copyright_matcher.extractors.hashing import DifferenceHasher
    from copyright_matcher.extractors.motion import FarnebackMotionExtractor
    from copyright_matcher.extractors.ocr import MockTextExtractor, VisionTextExtractor

    ocr_backend = settings.ocr.backend
    if ocr_backend == "mock":
        text_extractor = MockTextExtractor(
            tokens=settings.ocr.mock_tokens,
            min_token_length=settings.ocr.min_token_length,
        )
    elif ocr_backend == "vision":
        text_extractor = VisionTextExtractor(
            credentials_path=settings.ocr.credentials_path,
            min_token_length=settings.ocr.min_token_length,
        )
    else:
        raise ValueError(f"Unknown OCR backend: {ocr_backend}")

    face_backend = settings.faces.backend
    if face_backend == "mock":
        face_extractor = MockFaceExtractor(
            embedding_dim=settings.faces.embedding_dim,
            confidence_floor=settings.faces.confidence_floor,
        )
    elif face_backend == "insightface":
        face_extractor = InsightFaceExtractor(
            model_name=settings.faces.model_name,
            device=settings.faces.device,
            confidence_floor=settings.faces.confidence_floor,
        )
    else:
        raise ValueError(f"Unknown face backend: {face_backend}")

    return SignalExtractionPipeline(
        hasher=DifferenceHasher(hash_size=settings.hashing.hash_size),
        text_extractor=text_extractor,
        face_extractor=face_extractor,
        motion_extractor=FarnebackMotionExtractor(
            magnitude_threshold=settings.motion.magnitude_threshold,
        ),
        timeouts={
            "ocr": settings.ocr.timeout_seconds,
            "face": settings.faces.timeout_seconds,
            "motion": settings.motion.timeout_seconds,
        },
    )
