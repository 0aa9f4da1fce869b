"""
Application Settings.

Every threshold, timeout and policy flag of the capture pipeline lives here,
loaded from .env / environment variables.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # --- App ---
    env: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    public_base_url: str = "http://localhost:8000"

    # --- Anti-spoofing (screen replay) ---
    scanline_channel_delta: int = 50
    scanline_column_fraction: float = 0.2
    scanline_row_divisor: float = 5.0
    brightness_sample_divisor: int = 50
    brightness_variance_max: float = 20.0
    moire_sample_divisor: int = 200
    moire_offset: int = 2
    moire_pixel_delta: int = 5
    moire_fraction: float = 0.3
    spoof_min_indicators: int = 2
    spoof_sampling_seed: int = 1337

    # --- Regions ---
    photo_region_fraction: float = 0.4
    mrz_region_fraction: float = 0.3

    # --- OCR ---
    ocr_engine: str = "tesseract"          # "tesseract" | "hybrid"
    ocr_lang: str = "en"
    ocr_use_gpu: bool = False
    tesseract_config: str = "--oem 3 --psm 6"

    # --- MRZ ---
    mrz_min_line_length: int = 25
    mrz_max_line_length: int = 60
    expiry_window_years: int = 20

    # --- Validation ---
    detected_confidence_floor: float = 0.85
    accept_incomplete_documents: bool = True

    # --- Face ---
    match_threshold: float = 0.70
    strict_match_threshold: float = 0.95
    face_models_dir: str = "models/face"
    face_score_threshold: float = 0.6

    # --- Timeouts (seconds) ---
    validation_timeout_seconds: float = 45.0
    stage_timeout_seconds: float = 60.0

    # --- Pairing ---
    pairing_interval_seconds: float = 0.5
    pairing_max_attempts: int = 100
    pairing_secret_key: str = ""
    pairing_store: str = "memory"          # "memory" | "sql"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Settings singleton."""
    return Settings()
