"""
Frame Alignment
===============

Pairs original and candidate samples by timestamp.

Each original frame is matched to the candidate frame with the closest
timestamp. Pairs further apart than the tolerance window are excluded
rather than scored as dissimilar, so a candidate with a different start
offset or a trimmed intro is not penalized.

Rules:
    - Ties go to the earlier candidate frame
    - A candidate frame may pair with several original frames
    - Adding candidate frames outside every window never changes the result
"""

import bisect
from dataclasses import dataclass
from typing import List, Sequence

from copyright_matcher.models.frames import FrameSignals


@dataclass(frozen=True, slots=True)
class AlignedPair:
    """An original frame and its nearest candidate frame within tolerance."""

    original: FrameSignals
    candidate: FrameSignals

    @property
    def gap(self) -> float:
        return abs(self.original.timestamp - self.candidate.timestamp)


def align_frames(
    original: Sequence[FrameSignals],
    candidate: Sequence[FrameSignals],
    tolerance: float,
) -> List[AlignedPair]:
    """
    Align two sampled sequences.

    Args:
        original: Original frame signals
        candidate: Candidate frame signals
        tolerance: Maximum timestamp gap in seconds

    Returns:
        Aligned pairs in original order
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")
    if not original or not candidate:
        return []

    ordered = sorted(candidate, key=lambda s: s.timestamp)
    timestamps = [s.timestamp for s in ordered]

    pairs = []
    for frame in original:
        index = bisect.bisect_left(timestamps, frame.timestamp)

        best = None
        # Check the earlier neighbour first so ties resolve to it
        for i in (index - 1, index):
            if 0 <= i < len(ordered):
                gap = abs(timestamps[i] - frame.timestamp)
                if best is None or gap < best[0]:
                    best = (gap, ordered[i])

        if best is not None and best[0] <= tolerance:
            pairs.append(AlignedPair(original=frame, candidate=best[1]))

    return pairs
