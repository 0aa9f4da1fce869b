"""
Run the document pipeline on one image from disk and print the checklist.

Usage:
    python scripts/validate_image.py passport.jpg [--selfie me.jpg] [--strict]
"""
import argparse
import asyncio
import os
import sys
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passport_capture.api import dependencies
from passport_capture.config.settings import get_settings
from passport_capture.core.entities.claims import derive_claims
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.errors import CaptureError


def _load(path: str) -> RawFrame:
    with open(path, "rb") as f:
        return RawFrame.from_image_bytes(f.read())


async def run(args) -> int:
    settings = get_settings()
    print("=" * 60)
    print("  Passport Capture — single image")
    print("=" * 60)

    frame = _load(args.image)
    print(f"  Image: {args.image} ({frame.width}x{frame.height})")
    print(f"  OCR engine: {settings.ocr_engine}")

    t0 = time.perf_counter()
    try:
        result = await dependencies.get_validation_use_case().execute(frame)
    except CaptureError as e:
        print(f"\n  FAILED [{e.code}] {e.message}")
        return 1
    print(f"\n[1] Validation ({time.perf_counter() - t0:.1f}s)")

    v = result.validation
    print(f"  valid={v.is_valid} real_document={v.is_real_document}")
    for key, status in v.elements.items():
        mark = "OK " if status.detected else "-- "
        print(f"  {mark}{key.value:<15} {status.confidence:.2f}  {status.value or ''}")
    for w in v.warnings:
        print(f"  WARNING: {w}")
    for e in v.errors:
        print(f"  ERROR: {e}")

    if result.fields is not None:
        print("\n[2] Fields")
        for name, value in result.fields.to_dict().items():
            print(f"  {name:<15} {value}")

    if args.selfie:
        print("\n[3] Face match")
        try:
            match = await dependencies.get_match_use_case(strict=args.strict).execute(
                result.photo_region, _load(args.selfie)
            )
        except CaptureError as e:
            print(f"  FAILED [{e.code}] {e.message}")
            return 1
        print(f"  score={match.score:.3f} threshold={match.threshold} matched={match.matched}")
        if result.fields is not None:
            claims = derive_claims(result.fields, match, expiry_window_years=settings.expiry_window_years)
            print(f"  claims: {claims.clauses}")
    return 0


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("image")
    parser.add_argument("--selfie")
    parser.add_argument("--strict", action="store_true")
    sys.exit(asyncio.run(run(parser.parse_args())))


if __name__ == "__main__":
    main()
