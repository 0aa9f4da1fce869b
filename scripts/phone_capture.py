"""
Play the phone side of a pairing session from image files.

Announces itself on the session from the desktop's QR URL, waits for the
acknowledgement, then sends the document and the selfie.

Usage:
    python scripts/phone_capture.py "<pairing url>" passport.jpg selfie.jpg
"""
import argparse
import asyncio
import os
import sys
from urllib.parse import parse_qs, urlparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passport_capture.api import dependencies
from passport_capture.config.settings import get_settings
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.errors import CaptureError
from passport_capture.infrastructure.db.database import init_db


def _load(path: str) -> RawFrame:
    with open(path, "rb") as f:
        return RawFrame.from_image_bytes(f.read())


async def run(args) -> int:
    query = parse_qs(urlparse(args.url).query)
    try:
        session = dependencies.get_pairing_service().validate(
            query.get("session", [""])[0], query.get("token", [""])[0]
        )
        document, face = _load(args.document), _load(args.face)

        link = dependencies.build_secondary_link(session)
        print(f"  Connecting to session {session.session_id}...")
        await link.announce()
        print(f"  Desktop acknowledged after {link.attempts} attempts.")

        sent = await link.send_document(document)
        print(f"  Document sent (#{sent.sequence}).")
        sent = await link.send_face(face)
        print(f"  Selfie sent (#{sent.sequence}).")
        link.close()
    except CaptureError as e:
        print(f"  [{e.code}] {e.message}")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="pairing URL shown by the desktop")
    parser.add_argument("document", help="passport image")
    parser.add_argument("face", help="selfie image")
    args = parser.parse_args()

    if get_settings().pairing_store != "sql":
        parser.error("both devices need a shared store: set PAIRING_STORE=sql")
    init_db()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
