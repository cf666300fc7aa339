"""
Keyframe Hashing
================

Difference hash (dHash) fingerprints for sampled frames.

The hash is rendered as a string of '0'/'1' characters, one per bit, so a
positional string comparison counts exactly the differing bits. Visually
similar frames differ in few positions; unrelated frames in about half.
"""

import logging

import cv2
import imagehash
from PIL import Image

from copyright_matcher.models.frames import FrameSample


logger = logging.getLogger(__name__)


class DifferenceHasher:
    """
    dHash keyframe hasher backed by the imagehash library.

    Attributes:
        hash_size: Grid size; the hash has hash_size² bits
    """

    def __init__(self, hash_size: int = 8) -> None:
        if hash_size < 2:
            raise ValueError(f"hash_size must be >= 2, got {hash_size}")
        self.hash_size = hash_size

    @property
    def hash_length(self) -> int:
        return self.hash_size * self.hash_size

    def extract(self, sample: FrameSample) -> str:
        """
        Hash a sampled frame.

        Args:
            sample: Sample whose BGR thumbnail is hashed

        Returns:
            Bit string of length hash_size²
        """
        rgb = cv2.cvtColor(sample.thumbnail, cv2.COLOR_BGR2RGB)
        image_hash = imagehash.dhash(Image.fromarray(rgb), hash_size=self.hash_size)
        return "".join("1" if bit else "0" for bit in image_hash.hash.flatten())
