"""
Face Detection
==============

Face detectors producing bounding boxes and identity embeddings.

Embeddings answer only "is this the same depicted person in both frames";
nobody is identified. An embedding is attached only when the detection
confidence reaches the configured floor.

Backends:
    - MockFaceExtractor: deterministic pixel-derived embedding
    - InsightFaceExtractor: ArcFace embeddings from InsightFace
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from copyright_matcher.models.frames import BoundingBox, FaceDetection, FrameSample


logger = logging.getLogger(__name__)


class MockFaceExtractor:
    """
    Deterministic face detector stand-in for testing and offline runs.

    Reports one "face" covering the whole frame whose embedding is the
    mean-centered, L2-normalized grayscale thumbnail squeezed to
    ``embedding_dim`` values. Identical frames therefore get identical
    embeddings. A perfectly flat frame reports no face.

    Attributes:
        embedding_dim: Embedding length
        confidence: Reported detection confidence
        confidence_floor: Minimum confidence for an embedding
    """

    def __init__(
        self,
        embedding_dim: int = 128,
        confidence: float = 0.95,
        confidence_floor: float = 0.5,
    ) -> None:
        self.embedding_dim = embedding_dim
        self.confidence = confidence
        self.confidence_floor = confidence_floor

        logger.info(
            f"MockFaceExtractor initialized: dim={embedding_dim}, "
            f"confidence={confidence}, floor={confidence_floor}"
        )

    def extract(self, sample: FrameSample) -> Tuple[FaceDetection, ...]:
        gray = cv2.cvtColor(sample.thumbnail, cv2.COLOR_BGR2GRAY)
        squeezed = cv2.resize(gray, (self.embedding_dim, 1), interpolation=cv2.INTER_AREA)
        vector = squeezed.astype(np.float64).ravel()
        vector -= vector.mean()

        norm = np.linalg.norm(vector)
        if norm == 0:
            return ()

        height, width = gray.shape
        embedding = None
        if self.confidence >= self.confidence_floor:
            embedding = tuple(float(v) for v in vector / norm)

        return (
            FaceDetection(
                confidence=self.confidence,
                bounding_box=BoundingBox(x=0.0, y=0.0, width=float(width), height=float(height)),
                embedding=embedding,
            ),
        )


class InsightFaceExtractor:
    """Detect faces and extract ArcFace embeddings using InsightFace."""

    def __init__(
        self,
        model_name: str = "buffalo_l",
        device: str = "cpu",
        confidence_floor: float = 0.5,
    ) -> None:
        """
        Load the InsightFace model pack.

        Raises:
            ImportError: If insightface is not installed
        """
        try:
            from insightface.app import FaceAnalysis
        except ImportError:
            raise ImportError(
                "insightface is required for InsightFaceExtractor. "
                "Install with: pip install 'copyright-matcher[faces]'"
            )

        providers = (
            ["CUDAExecutionProvider", "CPUExecutionProvider"]
            if device == "cuda"
            else ["CPUExecutionProvider"]
        )
        self.app = FaceAnalysis(name=model_name, providers=providers)
        self.app.prepare(ctx_id=0, det_size=(640, 640))
        self.confidence_floor = confidence_floor

        logger.info(
            f"InsightFaceExtractor initialized: model={model_name}, "
            f"device={device}, floor={confidence_floor}"
        )

    def extract(self, sample: FrameSample) -> Tuple[FaceDetection, ...]:
        faces = self.app.get(sample.thumbnail)
        detections = []

        for face in faces:
            x1, y1, x2, y2 = (float(v) for v in face.bbox)
            confidence = min(1.0, max(0.0, float(face.det_score)))

            embedding = None
            if confidence >= self.confidence_floor and face.normed_embedding is not None:
                embedding = tuple(float(v) for v in face.normed_embedding)

            detections.append(
                FaceDetection(
                    confidence=confidence,
                    bounding_box=BoundingBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
                    embedding=embedding,
                )
            )

        return tuple(detections)
