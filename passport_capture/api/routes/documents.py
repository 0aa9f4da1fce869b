"""
Routes: document validation + face match uploads.
"""

import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from passport_capture.api import dependencies
from passport_capture.api.errors import to_http
from passport_capture.api.schemas.responses import (
    DocumentFieldsResponse,
    DocumentValidationResponse,
    ElementStatusResponse,
    FaceMatchResponse,
    ValidationResponse,
)
from passport_capture.config.settings import get_settings
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.errors import CaptureError
from passport_capture.infrastructure.quality.region_preprocessor import RegionPreprocessor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_frame(file: UploadFile) -> RawFrame:
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image (JPEG/PNG)")
    image_bytes = await file.read()
    if len(image_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    try:
        return RawFrame.from_image_bytes(image_bytes)
    except CaptureError as e:
        raise to_http(e) from e


@router.post("/documents/validate", response_model=DocumentValidationResponse)
async def validate_document(file: UploadFile = File(...)):
    """
    Validate a passport photo.

    Upload an image (JPEG/PNG) and receive:
    - Anti-spoofing verdict (screen replay)
    - Element checklist (MRZ, number, type, country, name, dates, photo)
    - Decoded MRZ fields, with unverified / synthesized markers
    """
    frame = await _read_frame(file)
    try:
        result = await dependencies.get_validation_use_case().execute(frame)
    except CaptureError as e:
        raise to_http(e) from e

    validation = result.validation
    response = DocumentValidationResponse(
        validation=ValidationResponse(
            is_valid=validation.is_valid,
            is_real_document=validation.is_real_document,
            elements={
                key.value: ElementStatusResponse(
                    detected=status.detected,
                    confidence=status.confidence,
                    value=status.value,
                )
                for key, status in validation.elements.items()
            },
            warnings=list(validation.warnings),
            errors=list(validation.errors),
        ),
        ocr_engine=result.ocr_engine,
        total_latency_ms=result.total_latency_ms,
        stage_latencies=result.stage_latencies,
    )

    if result.fields is not None:
        f = result.fields
        response.fields = DocumentFieldsResponse(
            document_type=f.document_type,
            issuing_country=f.issuing_country,
            surname=f.surname,
            given_names=f.given_names,
            name=f.name,
            document_number=f.document_number,
            nationality=f.nationality,
            date_of_birth=f.date_of_birth,
            sex=f.sex,
            date_of_expiry=f.date_of_expiry,
            personal_number=f.personal_number,
            unverified=sorted(f.unverified),
            synthesized=sorted(f.synthesized),
        )

    if result.decode is not None:
        response.mrz_format = result.decode.format.value if result.decode.format else None
        response.mrz_lines = list(result.decode.lines)
        response.composite_verified = result.decode.composite_verified

    return response


@router.post("/faces/match", response_model=FaceMatchResponse)
async def match_faces(
    document: UploadFile = File(...),
    selfie: UploadFile = File(...),
    strict: bool = False,
):
    """
    Compare the passport photo with a selfie.

    `strict=true` applies the stricter desktop-only threshold.
    """
    document_frame = await _read_frame(document)
    selfie_frame = await _read_frame(selfie)

    settings = get_settings()
    regions = RegionPreprocessor(
        photo_fraction=settings.photo_region_fraction,
        mrz_fraction=settings.mrz_region_fraction,
    ).split(document_frame)

    try:
        result = await dependencies.get_match_use_case(strict=strict).execute(regions.photo, selfie_frame)
    except CaptureError as e:
        raise to_http(e) from e

    return FaceMatchResponse(score=result.score, threshold=result.threshold, matched=result.matched)
