"""
Frame Sampler
=============

Extracts representative frames from a media source at fixed intervals.

For every interval i the sampler emits frames at t = 0, i, 2i, ... while
t <= horizon and t < duration. Several intervals may sample the same
instant; each instant is decoded once and shared between sequences.

Failure Mode:
    If the source cannot be decoded the sampler returns Unavailable rather
    than an empty sample set, so callers can tell "no match" apart from
    "could not assess".
"""

import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse

import numpy as np

from copyright_matcher.media.decoder import (
    MediaDecodeError,
    VideoReader,
    decode_image,
    resize_to_width,
)
from copyright_matcher.media.fetcher import MediaBlob
from copyright_matcher.models.frames import FrameSample
from copyright_matcher.models.match import Unavailable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleSet:
    """
    Sampled frames of one source, grouped by interval.

    Attributes:
        ref: Media reference
        duration: Source duration in seconds (0 for still images)
        sequences: Interval -> samples in increasing timestamp order
    """

    ref: str
    duration: float
    sequences: Dict[float, Tuple[FrameSample, ...]] = field(repr=False)

    @property
    def intervals(self) -> List[float]:
        return sorted(self.sequences)

    @property
    def total_samples(self) -> int:
        return sum(len(seq) for seq in self.sequences.values())


def sample_timestamps(
    interval: float,
    horizon: float,
    duration: Optional[float],
) -> List[float]:
    """
    Compute sampling instants for one interval.

    Args:
        interval: Seconds between samples (> 0)
        horizon: Latest sampled timestamp (inclusive)
        duration: Source duration, or None when unknown

    Returns:
        Timestamps 0, i, 2i, ... within the horizon and the duration
    """
    if interval <= 0:
        raise ValueError(f"interval must be > 0, got {interval}")

    timestamps = []
    n = 0
    while True:
        t = round(n * interval, 6)
        if t > horizon:
            break
        if duration is not None and t >= duration and n > 0:
            break
        timestamps.append(t)
        n += 1
    return timestamps


def normalize_intervals(intervals: Iterable[float]) -> List[float]:
    """Validate and de-duplicate sampling intervals."""
    result = sorted({float(i) for i in intervals})
    if not result:
        raise ValueError("at least one sampling interval is required")
    if result[0] <= 0:
        raise ValueError(f"sampling intervals must be > 0, got {result}")
    return result


class FrameSampler:
    """
    Samples frames from still images and videos.

    Attributes:
        horizon_seconds: Latest timestamp that may be sampled
        thumbnail_max_width: Frames are downscaled to at most this width

    Example:
        sampler = FrameSampler(horizon_seconds=60)
        samples = sampler.sample(media, intervals=[1.0, 2.0, 5.0])
        if isinstance(samples, Unavailable):
            ...
    """

    def __init__(
        self,
        horizon_seconds: float = 60.0,
        thumbnail_max_width: int = 640,
    ) -> None:
        if horizon_seconds <= 0:
            raise ValueError(f"horizon_seconds must be > 0, got {horizon_seconds}")

        self.horizon_seconds = horizon_seconds
        self.thumbnail_max_width = thumbnail_max_width

        self._sources_sampled: int = 0
        self._frames_decoded: int = 0
        self._unavailable_count: int = 0

        logger.info(
            f"FrameSampler initialized: horizon={horizon_seconds}s, "
            f"max_width={thumbnail_max_width}px"
        )

    def sample(
        self,
        media: MediaBlob,
        intervals: Iterable[float],
    ) -> Union[SampleSet, Unavailable]:
        """
        Sample frames from media at each interval.

        Args:
            media: Fetched media bytes
            intervals: Sampling intervals in seconds

        Returns:
            SampleSet, or Unavailable if the media cannot be decoded
        """
        interval_list = normalize_intervals(intervals)
        self._sources_sampled += 1

        try:
            image = decode_image(media.content)
            if image is not None:
                result = self._sample_image(media.ref, image, interval_list)
            else:
                result = self._sample_video(media, interval_list)
        except MediaDecodeError as e:
            result = Unavailable(ref=media.ref, reason=f"undecodable media: {e}")

        if isinstance(result, Unavailable):
            self._unavailable_count += 1
            logger.warning(f"Sampling failed for {media.ref}: {result.reason}")
        else:
            logger.info(
                f"Sampled {result.total_samples} frames from {media.ref} "
                f"(duration={result.duration:.2f}s, intervals={interval_list})"
            )
        return result

    def _sample_image(
        self,
        ref: str,
        image: np.ndarray,
        intervals: List[float],
    ) -> SampleSet:
        thumbnail = resize_to_width(image, self.thumbnail_max_width)
        self._frames_decoded += 1
        sequences = {
            interval: (FrameSample(timestamp=0.0, interval=interval, thumbnail=thumbnail),)
            for interval in intervals
        }
        return SampleSet(ref=ref, duration=0.0, sequences=sequences)

    def _sample_video(
        self,
        media: MediaBlob,
        intervals: List[float],
    ) -> Union[SampleSet, Unavailable]:
        with VideoReader(media.content, suffix=_suffix_for(media.ref)) as video:
            duration = video.duration
            cache: Dict[float, Optional[np.ndarray]] = {}
            sequences: Dict[float, Tuple[FrameSample, ...]] = {}

            for interval in intervals:
                samples = []
                for t in sample_timestamps(interval, self.horizon_seconds, duration):
                    if t not in cache:
                        frame = video.read_at(t)
                        cache[t] = (
                            resize_to_width(frame, self.thumbnail_max_width)
                            if frame is not None
                            else None
                        )
                        if frame is not None:
                            self._frames_decoded += 1
                    thumbnail = cache[t]
                    if thumbnail is None:
                        # End of readable stream for this source
                        logger.debug(f"No frame at t={t:.2f} in {media.ref}, stopping")
                        break
                    samples.append(
                        FrameSample(timestamp=t, interval=interval, thumbnail=thumbnail)
                    )
                sequences[interval] = tuple(samples)

        if not any(sequences.values()):
            return Unavailable(ref=media.ref, reason="no decodable frames")

        if duration is None:
            duration = max(s.timestamp for seq in sequences.values() for s in seq)

        return SampleSet(ref=media.ref, duration=duration, sequences=sequences)

    def get_metrics(self) -> dict:
        """Get sampler metrics for observability."""
        return {
            "sources_sampled": self._sources_sampled,
            "frames_decoded": self._frames_decoded,
            "unavailable_count": self._unavailable_count,
        }


def _suffix_for(ref: str) -> str:
    """File suffix hint for the temporary video file."""
    suffix = PurePosixPath(urlparse(ref).path).suffix
    return suffix if suffix else ".mp4"
