"""
Takedown Notices
================

Renders takedown notice documents for confirmed matches.

Notices are plain-text documents written to the notice directory. The
returned URL is ``notice_base_url/<file>`` when a public base URL is
configured, otherwise a ``file://`` URI of the written document.
"""

import logging
from datetime import datetime
from pathlib import Path
from string import Template
from typing import Optional

from copyright_matcher.models.match import CopyrightMatch


logger = logging.getLogger(__name__)


NOTICE_TEMPLATE = Template("""\
COPYRIGHT INFRINGEMENT NOTIFICATION
===================================

Date: $date
Reference: $match_id

To the designated agent of $platform,

I am writing on behalf of the owner of the original work identified below.
The material located at the following URL reproduces that work without
authorization:

    Infringing material: $candidate_url
    Original work:       $original_ref

Content analysis compared $aligned_pairs aligned frames of both works and
found an overall similarity of $similarity (evidence quality: $data_quality).

    Keyframe similarity: $keyframe_score
    On-screen text:      $ocr_score
    Faces:               $face_score
    Motion:              $motion_score

I have a good faith belief that use of the material in the manner
complained of is not authorized by the copyright owner, its agent, or the
law. I request that you remove or disable access to the material.

The information in this notification is accurate.

$sender_name
""")


class NoticeGenerationError(Exception):
    """Raised when a notice document cannot be written."""
    pass


class NoticeGenerator:
    """
    Writes takedown notices to disk.

    Attributes:
        notice_dir: Directory for generated notices
        base_url: Public base URL for notices (None = file:// URIs)
        sender_name: Signature on the notice
    """

    def __init__(
        self,
        notice_dir: str,
        base_url: Optional[str] = None,
        sender_name: str = "Content Protection Team",
    ) -> None:
        self.notice_dir = Path(notice_dir)
        self.base_url = base_url.rstrip("/") if base_url else None
        self.sender_name = sender_name

        logger.info(f"NoticeGenerator initialized: dir={self.notice_dir}, base_url={self.base_url}")

    def generate(self, match: CopyrightMatch, action_id: str, now: datetime) -> str:
        """
        Render and write a notice for a match.

        Args:
            match: Match the notice is about
            action_id: Action the notice belongs to (used as file name)
            now: Notice date

        Returns:
            URL of the written notice

        Raises:
            NoticeGenerationError: If the document cannot be written
        """
        content = NOTICE_TEMPLATE.substitute(
            date=now.strftime("%Y-%m-%d"),
            match_id=match.id,
            platform=match.platform,
            candidate_url=match.candidate_url,
            original_ref=match.original_ref,
            aligned_pairs=match.aligned_pairs,
            similarity=f"{match.similarity_score:.2f}",
            data_quality=match.data_quality.value,
            keyframe_score=f"{match.keyframe_score:.2f}",
            ocr_score=f"{match.ocr_score:.2f}",
            face_score=f"{match.face_score:.2f}",
            motion_score=f"{match.motion_score:.2f}",
            sender_name=self.sender_name,
        )

        filename = _notice_filename(action_id)
        path = self.notice_dir / filename
        try:
            self.notice_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise NoticeGenerationError(f"Could not write notice {path}: {e}")

        logger.info(f"Takedown notice written: {path}")

        if self.base_url:
            return f"{self.base_url}/{filename}"
        return path.resolve().as_uri()

    def discard(self, action_id: str) -> None:
        """Remove the notice of an action that was never recorded."""
        path = self.notice_dir / _notice_filename(action_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove unrecorded notice {path}: {e}")
        else:
            logger.info(f"Discarded unrecorded notice: {path}")


def _notice_filename(action_id: str) -> str:
    return f"takedown-{action_id}.txt"
