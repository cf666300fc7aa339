"""
Media Module
============

Media access, decoding and frame sampling.

This module provides the ingestion layer of the matching engine:
    - MediaFetcher / HttpMediaFetcher: bytes for a URL or local path
    - decoder: the only place media is decoded into pixels
    - FrameSampler: representative frames at fixed intervals

Example:
    from copyright_matcher.media import FrameSampler, HttpMediaFetcher

    media = HttpMediaFetcher().fetch_media("https://example.com/clip.mp4")
    samples = FrameSampler().sample(media, intervals=[1.0, 5.0])
"""

from copyright_matcher.media.fetcher import HttpMediaFetcher, MediaBlob, MediaFetcher
from copyright_matcher.media.decoder import MediaDecodeError, VideoReader, decode_image
from copyright_matcher.media.sampler import (
    FrameSampler,
    SampleSet,
    normalize_intervals,
    sample_timestamps,
)


__all__ = [
    "MediaBlob",
    "MediaFetcher",
    "HttpMediaFetcher",
    "MediaDecodeError",
    "VideoReader",
    "decode_image",
    "FrameSampler",
    "SampleSet",
    "normalize_intervals",
    "sample_timestamps",
]
