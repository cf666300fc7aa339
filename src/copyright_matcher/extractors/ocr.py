"""
On-Screen Text Extraction
=========================

OCR backends producing normalized token sets.

Burned-in captions and watermarks survive heavy re-encoding that defeats
pixel hashing, so text is an independent signal.

Backends:
    - MockTextExtractor: fixed tokens for every frame (testing, offline)
    - VisionTextExtractor: Google Cloud Vision text detection (production)
"""

import logging
import re
from typing import FrozenSet, Iterable, Optional

import cv2

from copyright_matcher.errors import RateLimitedError
from copyright_matcher.models.frames import FrameSample


logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^0-9a-z]+")


class VisionAPIError(Exception):
    """Raised when a Vision API call fails."""
    pass


def normalize_tokens(text: str, min_token_length: int = 2) -> FrozenSet[str]:
    """
    Split text into lower-cased alphanumeric tokens.

    Args:
        text: Raw OCR text
        min_token_length: Tokens shorter than this are dropped

    Returns:
        Set of normalized tokens
    """
    return frozenset(
        token
        for token in _TOKEN_SPLIT.split(text.lower())
        if len(token) >= min_token_length
    )


class MockTextExtractor:
    """
    Deterministic OCR stand-in.

    Returns the same configured tokens for every frame. With no tokens
    configured it behaves like a frame without text.
    """

    def __init__(
        self,
        tokens: Optional[Iterable[str]] = None,
        min_token_length: int = 2,
    ) -> None:
        self._tokens = normalize_tokens(" ".join(tokens or []), min_token_length)

        logger.info(f"MockTextExtractor initialized: {len(self._tokens)} fixed tokens")

    def extract(self, sample: FrameSample) -> FrozenSet[str]:
        return self._tokens


class VisionTextExtractor:
    """
    OCR using the Google Cloud Vision API.

    Attributes:
        min_token_length: Tokens shorter than this are dropped
        credentials_path: Path to service account JSON (None = ADC)
    """

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        min_token_length: int = 2,
    ) -> None:
        """
        Initialize the Vision OCR backend.

        Raises:
            ImportError: If google-cloud-vision is not installed
        """
        self.min_token_length = min_token_length
        self._api_call_count: int = 0
        self._api_error_count: int = 0

        self._client = None
        self._init_client(credentials_path)

        logger.info(f"VisionTextExtractor initialized: min_token_length={min_token_length}")

    def _init_client(self, credentials_path: Optional[str]) -> None:
        """Initialize Google Cloud Vision client."""
        try:
            from google.cloud import vision

            if credentials_path:
                self._client = vision.ImageAnnotatorClient.from_service_account_json(
                    credentials_path
                )
                logger.info(f"Vision client initialized from: {credentials_path}")
            else:
                self._client = vision.ImageAnnotatorClient()
                logger.info("Vision client initialized with default credentials")

        except ImportError:
            raise ImportError(
                "google-cloud-vision is required for VisionTextExtractor. "
                "Install with: pip install 'copyright-matcher[vision]'"
            )
        except Exception as e:
            raise VisionAPIError(f"Failed to initialize Vision client: {e}")

    def extract(self, sample: FrameSample) -> FrozenSet[str]:
        """
        Detect text in a sampled frame.

        Raises:
            RateLimitedError: If the API quota is exhausted
            VisionAPIError: If the API reports an error
        """
        from google.api_core import exceptions as api_exceptions
        from google.cloud import vision

        ok, encoded = cv2.imencode(".jpg", sample.thumbnail)
        if not ok:
            raise VisionAPIError(f"Could not encode frame at t={sample.timestamp:.2f}")

        try:
            response = self._client.text_detection(
                image=vision.Image(content=encoded.tobytes())
            )
            self._api_call_count += 1
        except (api_exceptions.ResourceExhausted, api_exceptions.TooManyRequests) as e:
            self._api_error_count += 1
            raise RateLimitedError("vision-ocr", retry_delay_seconds(e)) from e

        if response.error.message:
            self._api_error_count += 1
            raise VisionAPIError(f"Vision API: {response.error.message}")

        if not response.text_annotations:
            return frozenset()

        # The first annotation holds the full detected text
        return normalize_tokens(
            response.text_annotations[0].description,
            self.min_token_length,
        )

    def get_metrics(self) -> dict:
        """Get OCR metrics for observability."""
        return {
            "api_call_count": self._api_call_count,
            "api_error_count": self._api_error_count,
        }


def retry_delay_seconds(error: Exception) -> Optional[float]:
    """Server retry hint carried by a google.rpc.RetryInfo error detail."""
    for detail in getattr(error, "details", None) or ():
        delay = getattr(detail, "retry_delay", None)
        if delay is not None:
            return delay.seconds + delay.nanos / 1e9
    return None
