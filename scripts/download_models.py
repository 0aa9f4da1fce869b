"""
Download the face models (YuNet + SFace) and, optionally, warm up the
PaddleOCR / EasyOCR caches so the first request is not a download.

Usage:
    python scripts/download_models.py [--ocr]
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passport_capture.config.settings import get_settings
from passport_capture.infrastructure.face.opencv_sface_engine import OpenCVSFaceEngine


def setup_face_models():
    settings = get_settings()
    print("\n--- Setting up face models ---")
    engine = OpenCVSFaceEngine(models_dir=settings.face_models_dir)
    engine.ensure_models()
    print(f"  YuNet: {engine.yunet_path}")
    print(f"  SFace: {engine.sface_path}")


def setup_ocr():
    settings = get_settings()
    print("\n--- Setting up OCR models ---")
    from passport_capture.infrastructure.ocr.hybrid_mrz_engine import HybridMRZRecognizer
    recognizer = HybridMRZRecognizer(lang=settings.ocr_lang, use_gpu=settings.ocr_use_gpu)
    recognizer._get_paddle()
    recognizer._get_easyocr()
    print("  PaddleOCR + EasyOCR ready.")


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--ocr", action="store_true", help="also fetch PaddleOCR / EasyOCR models")
    args = parser.parse_args()

    setup_face_models()
    if args.ocr:
        setup_ocr()
    print("\nModels ready.")


if __name__ == "__main__":
    main()
