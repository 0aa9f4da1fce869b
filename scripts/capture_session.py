"""
Run one capture flow from the terminal: document, face, summary, proof.

Local mode grabs frames from the OpenCV camera when Enter is pressed.
With --pair, prints the phone URL and waits for the paired device instead;
both processes then share the SQL pairing store (PAIRING_STORE=sql).

Usage:
    python scripts/capture_session.py [--pair]
"""
import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passport_capture.api import dependencies
from passport_capture.config.settings import get_settings
from passport_capture.core.errors import InvalidTransition
from passport_capture.core.use_cases.capture_flow import CAPTURE_STAGES, TERMINAL_STAGES, CaptureSource, Stage
from passport_capture.core.use_cases.pairing import PrimaryDeviceLink
from passport_capture.infrastructure.db.database import init_db


async def _prompt(text: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, text)


def _show(ctx) -> None:
    print(f"\n  stage={ctx.stage.value} source={ctx.source.value} retries={ctx.retries}")
    if ctx.error is not None:
        print(f"  [{ctx.error.code}] {ctx.error.message}")
    if ctx.document is not None:
        v = ctx.document.validation
        print(f"  document: valid={v.is_valid} real={v.is_real_document}")
        for w in v.warnings:
            print(f"  WARNING: {w}")
    if ctx.match is not None:
        print(f"  face match: {ctx.match.score:.3f} (threshold {ctx.match.threshold})")
    if ctx.claims is not None:
        print(f"  claims: {ctx.claims.clauses}")


async def _step(coordinator) -> None:
    """One prompt: capture or confirm for the current stage, retry or cancel."""
    ctx = coordinator.context
    answer = (await _prompt(f"[{ctx.stage.value}] Enter=continue, r=retry, q=cancel: ")).strip().lower()
    try:
        if answer == "q":
            ctx = await coordinator.cancel()
        elif answer == "r" or (ctx.source is CaptureSource.PAIRED and ctx.stage in CAPTURE_STAGES):
            # A paired stage that failed can only be retried from here.
            ctx = await coordinator.retry()
        elif ctx.stage is Stage.DOCUMENT:
            ctx = await coordinator.capture_document()
        elif ctx.stage is Stage.FACE:
            ctx = await coordinator.capture_face()
        elif ctx.stage is Stage.SUMMARY:
            ctx = await coordinator.confirm_summary()
    except InvalidTransition as e:
        print(f"  {e}")
        return
    _show(ctx)


async def _finish(coordinator) -> None:
    if coordinator.context.stage not in TERMINAL_STAGES:
        await coordinator.cancel()
    if coordinator.context.receipt is not None:
        print(f"\n  Receipt: {coordinator.context.receipt.hash}")


async def run_local() -> None:
    coordinator = dependencies.build_capture_coordinator()
    _show(await coordinator.start())
    try:
        while coordinator.context.stage not in TERMINAL_STAGES:
            await _step(coordinator)
    finally:
        await _finish(coordinator)


async def run_paired() -> None:
    settings = get_settings()
    session, url = dependencies.get_pairing_service().create_session()
    print(f"\n  Open on the phone:\n  {url}\n")

    bus = dependencies.get_message_bus()
    await PrimaryDeviceLink(bus, session).wait_for_connection(settings.stage_timeout_seconds)
    print("  Phone connected.")

    coordinator = dependencies.build_capture_coordinator()
    await coordinator.start()
    _show(await coordinator.pair(session))
    try:
        shown = None
        while coordinator.context.stage not in TERMINAL_STAGES:
            ctx = coordinator.context
            if ctx is not shown and (ctx.error is not None or not coordinator.is_polling):
                _show(ctx)
                shown = ctx
            if coordinator.is_polling or ctx.stage is Stage.MATCHING:
                # Still waiting on the phone.
                await asyncio.sleep(settings.pairing_interval_seconds)
            else:
                await _step(coordinator)
                shown = coordinator.context
    finally:
        await _finish(coordinator)


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--pair", action="store_true", help="capture on a paired phone")
    args = parser.parse_args()

    if args.pair:
        if get_settings().pairing_store != "sql":
            parser.error("the phone posts to the API server: set PAIRING_STORE=sql to share its store")
        init_db()
    asyncio.run(run_paired() if args.pair else run_local())


if __name__ == "__main__":
    main()
