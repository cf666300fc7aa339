"""
Motion Extraction
=================

Dominant motion between consecutive sampled frames of one source.

Direction and magnitude capture temporal structure (same choreography,
same camera move) that survives color grading and mild cropping.

Method:
    1. Dense Farnebäck optical flow between the two grayscale thumbnails
    2. magnitude = mean per-pixel flow magnitude over the whole frame
    3. direction = circular mean of the angles of pixels whose magnitude
       exceeds the threshold:  atan2(mean(sin θ), mean(cos θ))

The first sample of a sequence (and every still image) has no predecessor
and reports a motionless vector, direction 0 and magnitude 0.

Sampled frames are seconds apart, so the pyramid and window are larger
than typical frame-to-frame settings.

Reference:
    Farnebäck, G. (2003). Two-Frame Motion Estimation Based on
    Polynomial Expansion. Image Analysis, 363-370.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from copyright_matcher.media.decoder import to_grayscale
from copyright_matcher.models.frames import FrameSample, MotionVector


logger = logging.getLogger(__name__)

STILL = MotionVector(direction=0.0, magnitude=0.0)


def dense_flow(
    prev_gray: np.ndarray,
    curr_gray: np.ndarray,
    levels: int = 4,
    winsize: int = 21,
    iterations: int = 3,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Farnebäck flow as per-pixel (magnitude, angle in radians).

    Raises:
        ValueError: If the frames are not same-shaped 2D uint8 matrices
    """
    if prev_gray.ndim != 2 or prev_gray.shape != curr_gray.shape:
        raise ValueError(
            f"Frames must be same-shaped 2D grayscale: {prev_gray.shape} vs {curr_gray.shape}"
        )
    if prev_gray.dtype != np.uint8 or curr_gray.dtype != np.uint8:
        raise ValueError(f"Frames must be uint8: {prev_gray.dtype}, {curr_gray.dtype}")

    flow = cv2.calcOpticalFlowFarneback(
        prev_gray, curr_gray, None, 0.5, levels, winsize, iterations, 5, 1.2, 0
    )
    magnitude, angle = cv2.cartToPolar(flow[..., 0], flow[..., 1])
    return magnitude, angle


def dominant_direction(
    magnitude: np.ndarray,
    angle: np.ndarray,
    threshold: float,
) -> Optional[float]:
    """Circular mean angle of significant flow in degrees [0, 360), or None."""
    significant = magnitude > threshold
    if not np.any(significant):
        return None

    angles = angle[significant]
    mean = np.arctan2(np.mean(np.sin(angles)), np.mean(np.cos(angles)))
    degrees = float(np.degrees(mean)) % 360.0
    # Tiny negative angles can round up to exactly 360
    return 0.0 if degrees >= 360.0 else degrees


class FarnebackMotionExtractor:
    """
    Motion vectors from Farnebäck optical flow.

    Attributes:
        magnitude_threshold: Minimum per-pixel magnitude counted for the
            dominant direction
    """

    def __init__(self, magnitude_threshold: float = 0.5) -> None:
        self.magnitude_threshold = magnitude_threshold

        logger.info(f"FarnebackMotionExtractor initialized: threshold={magnitude_threshold}")

    def extract(
        self,
        previous: Optional[FrameSample],
        current: FrameSample,
    ) -> MotionVector:
        """
        Estimate motion from ``previous`` to ``current``.

        Returns:
            MotionVector; motionless for the first sample of a sequence
        """
        if previous is None:
            return STILL

        prev_gray = to_grayscale(previous.thumbnail)
        curr_gray = to_grayscale(current.thumbnail)
        if prev_gray.shape != curr_gray.shape:
            height, width = curr_gray.shape
            prev_gray = cv2.resize(prev_gray, (width, height), interpolation=cv2.INTER_AREA)

        magnitude, angle = dense_flow(prev_gray, curr_gray)
        direction = dominant_direction(magnitude, angle, self.magnitude_threshold)

        motion = MotionVector(
            direction=direction if direction is not None else 0.0,
            magnitude=float(np.mean(magnitude)),
        )
        logger.debug(
            f"Motion t={previous.timestamp:.2f}->{current.timestamp:.2f}: "
            f"dir={motion.direction:.1f}, mag={motion.magnitude:.2f}"
        )
        return motion
