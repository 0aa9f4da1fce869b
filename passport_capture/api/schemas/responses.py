"""
Pydantic schemas — request/response models for the API.

REST responses are snake_case. Pairing messages keep the camelCase wire
format shared with the phone page.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ElementStatusResponse(BaseModel):
    detected: bool
    confidence: float = Field(ge=0.0, le=1.0)
    value: str | None = None


class ValidationResponse(BaseModel):
    is_valid: bool
    is_real_document: bool
    elements: dict[str, ElementStatusResponse]
    warnings: list[str]
    errors: list[str]


class DocumentFieldsResponse(BaseModel):
    document_type: str
    issuing_country: str
    surname: str
    given_names: str
    name: str
    document_number: str
    nationality: str
    date_of_birth: str
    sex: str
    date_of_expiry: str
    personal_number: str | None = None
    unverified: list[str] = []
    synthesized: list[str] = []


class DocumentValidationResponse(BaseModel):
    validation: ValidationResponse
    fields: DocumentFieldsResponse | None = None
    mrz_format: str | None = None
    mrz_lines: list[str] = []
    composite_verified: bool | None = None
    ocr_engine: str = ""
    total_latency_ms: float = 0.0
    stage_latencies: dict = {}


class FaceMatchResponse(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    threshold: float
    matched: bool


class PairingSessionResponse(BaseModel):
    session_id: str
    secret_token: str
    url: str


class PairingMessageRequest(BaseModel):
    type: Literal["connected", "document", "face", "validation", "acknowledged"]
    sessionId: str
    secretToken: str
    timestamp: float | None = None
    payload: dict = {}


class PairingMessageResponse(PairingMessageRequest):
    sequence: int


class PairingMessagesResponse(BaseModel):
    session_id: str
    messages: list[PairingMessageResponse]
    last_sequence: int


class ErrorResponse(BaseModel):
    code: str
    message: str
    retryable: bool
    guidance: str
