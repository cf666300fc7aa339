"""
Media Decoder
=============

Decodes still images and videos into OpenCV matrices.

Design Rules:
    - This is the ONLY place in the codebase that decodes media
    - Validates shape and dtype
    - Fails fast on corrupt input with MediaDecodeError
    - Frames are downscaled to a bounded width, aspect preserved
"""

import logging
import os
import tempfile
from typing import Optional

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class MediaDecodeError(Exception):
    """Raised when media decoding fails."""
    pass


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """
    Decode still-image bytes to a BGR numpy array.

    Args:
        data: Encoded image bytes (JPEG, PNG, WebP, ...)

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8, or None if the
        bytes are not a still image OpenCV understands
    """
    nparr = np.frombuffer(data, np.uint8)
    if nparr.size == 0:
        return None

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        return None

    if bgr.ndim != 3 or bgr.shape[2] != 3 or bgr.dtype != np.uint8:
        raise MediaDecodeError(f"Invalid decoded image: shape={bgr.shape}, dtype={bgr.dtype}")

    return bgr


def resize_to_width(frame: np.ndarray, max_width: int) -> np.ndarray:
    """Downscale a frame to at most ``max_width`` pixels wide (never upscales)."""
    height, width = frame.shape[:2]
    if width <= max_width:
        return frame

    scale = max_width / float(width)
    new_size = (max_width, max(1, int(round(height * scale))))
    return cv2.resize(frame, new_size, interpolation=cv2.INTER_AREA)


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR frame to a grayscale uint8 matrix."""
    if frame.ndim == 2:
        return frame
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


class VideoReader:
    """
    Random-access reader over in-memory video bytes.

    OpenCV only opens videos from a path, so the bytes are spooled to a
    temporary file for the lifetime of the reader.

    Example:
        with VideoReader(data) as video:
            frame = video.read_at(2.0)
    """

    def __init__(self, data: bytes, suffix: str = ".mp4") -> None:
        self._data = data
        self._suffix = suffix
        self._path: Optional[str] = None
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self) -> "VideoReader":
        """
        Open the video.

        Raises:
            MediaDecodeError: If OpenCV cannot open the stream
        """
        fd, self._path = tempfile.mkstemp(suffix=self._suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(self._data)

        self._capture = cv2.VideoCapture(self._path)
        if not self._capture.isOpened():
            self.close()
            raise MediaDecodeError("cv2.VideoCapture could not open the stream")

        logger.debug(
            f"Opened video: fps={self.fps:.2f}, frames={self.frame_count}, "
            f"duration={self.duration}"
        )
        return self

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        if self._path is not None:
            try:
                os.remove(self._path)
            except OSError as e:
                logger.warning(f"Could not remove temp video {self._path}: {e}")
            self._path = None

    @property
    def fps(self) -> float:
        if self._capture is None:
            return 0.0
        return float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0)

    @property
    def frame_count(self) -> int:
        if self._capture is None:
            return 0
        return int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)

    @property
    def duration(self) -> Optional[float]:
        """Duration in seconds, or None when the container does not say."""
        if self.fps <= 0 or self.frame_count <= 0:
            return None
        return self.frame_count / self.fps

    def read_at(self, timestamp: float) -> Optional[np.ndarray]:
        """
        Read the frame closest to ``timestamp`` seconds.

        Returns:
            BGR frame, or None past the end of the stream
        """
        if self._capture is None:
            raise MediaDecodeError("VideoReader is not open")

        if self.fps > 0:
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, int(round(timestamp * self.fps)))
        else:
            self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)

        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        if frame.ndim != 3 or frame.dtype != np.uint8:
            raise MediaDecodeError(f"Invalid video frame at t={timestamp:.2f}: {frame.shape}")
        return frame

    def __enter__(self) -> "VideoReader":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()
