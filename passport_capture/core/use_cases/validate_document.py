"""
Use Case: Validate Document

Orchestrates: Anti-spoofing → Regions → OCR → MRZ decode → Photo → Aggregate
Measures the latency of each stage. The CPU-bound work runs in the default
executor and is bounded by the validation timeout.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial

import numpy as np

from passport_capture.core.entities.document import DecodeResult, DocumentFields
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.validation import PassportValidation
from passport_capture.core.errors import DecodeIncomplete, RecognitionFailed, RecognitionTimeout
from passport_capture.core.interfaces.ocr_engine import ITextRecognizer, RecognizedText
from passport_capture.core.interfaces.spoof_detector import ISpoofDetector
from passport_capture.infrastructure.face.photo_detector import PassportPhotoDetector
from passport_capture.infrastructure.quality.region_preprocessor import RegionPreprocessor
from passport_capture.infrastructure.rules.mrz_decoder import MRZDecoder
from passport_capture.infrastructure.rules.validation_aggregator import (
    ValidationAggregator,
    synthesize_document_fields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedDocument:
    """Everything one document capture attempt produced."""
    frame: RawFrame
    photo_region: np.ndarray
    validation: PassportValidation
    fields: DocumentFields | None
    decode: DecodeResult | None = None
    ocr_engine: str = ""
    stage_latencies: dict[str, float] = field(default_factory=dict)
    total_latency_ms: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.validation.is_valid


class DocumentValidationUseCase:
    """
    Use Case: document frame → pipeline → ValidatedDocument.

    Dependency Injection: every collaborator comes through the constructor.
    """

    def __init__(
        self,
        spoof_detector: ISpoofDetector,
        preprocessor: RegionPreprocessor,
        text_recognizer: ITextRecognizer,
        decoder: MRZDecoder,
        photo_detector: PassportPhotoDetector,
        aggregator: ValidationAggregator,
        timeout_seconds: float = 45.0,
    ):
        self._spoof = spoof_detector
        self._preprocessor = preprocessor
        self._ocr = text_recognizer
        self._decoder = decoder
        self._photo = photo_detector
        self._aggregator = aggregator
        self._timeout = timeout_seconds

    async def execute(self, frame: RawFrame, fallback: DocumentFields | None = None) -> ValidatedDocument:
        """
        Async entry point.

        Raises:
            RecognitionTimeout: the pipeline did not finish within the timeout.
        """
        loop = asyncio.get_running_loop()
        call = partial(self.run, frame, fallback)
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, call), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Document validation timed out after {self._timeout}s")
            raise RecognitionTimeout(
                f"Validation timed out after {self._timeout:.0f} seconds. Please try again."
            ) from e

    def run(self, frame: RawFrame, fallback: DocumentFields | None = None) -> ValidatedDocument:
        """
        Run the full pipeline synchronously.

        1. Anti-spoofing — a positive verdict does not stop the pipeline
        2. Region split — photo + MRZ crops
        3. OCR + MRZ decode — partial results kept
        4. Photo detection
        5. Aggregation, then placeholder fields if accepted without a decode
        """
        stage_latencies: dict[str, float] = {}
        t_start = time.perf_counter()

        # ── 1. Anti-spoofing ───────────────────────────────
        t0 = time.perf_counter()
        verdict = self._spoof.evaluate(frame)
        stage_latencies["spoof_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        # ── 2. Regions ─────────────────────────────────────
        t0 = time.perf_counter()
        regions = self._preprocessor.split(frame)
        stage_latencies["regions_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        # ── 3. OCR + MRZ ───────────────────────────────────
        t0 = time.perf_counter()
        recognized: RecognizedText | None = None
        decoded: DecodeResult | None = None
        try:
            recognized = self._ocr.recognize(regions.mrz)
            decoded = self._decoder.decode_text(recognized.lines)
        except RecognitionFailed as e:
            logger.warning(f"OCR failed: {e.message}")
        except DecodeIncomplete as e:
            logger.info(f"MRZ not decoded: {e.message}")
        stage_latencies["ocr_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        # ── 4. Photo ───────────────────────────────────────
        t0 = time.perf_counter()
        photo = self._photo.detect(regions.photo)
        stage_latencies["photo_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        # ── 5. Aggregate ───────────────────────────────────
        validation = self._aggregator.aggregate(verdict, photo, recognized, decoded)
        fields = decoded.fields if decoded is not None else None
        if fields is None and validation.is_valid:
            fields, validation = synthesize_document_fields(validation, fallback)

        total = round((time.perf_counter() - t_start) * 1000, 2)
        logger.info(f"Document validated in {total}ms: valid={validation.is_valid}")
        return ValidatedDocument(
            frame=frame,
            photo_region=regions.photo,
            validation=validation,
            fields=fields,
            decode=decoded,
            ocr_engine=recognized.ocr_engine if recognized is not None else "",
            stage_latencies=stage_latencies,
            total_latency_ms=total,
        )
