#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import sys

from homework_scanner.bootstrap import DEFAULT_IDENTITY, build_services, configure_logging
from homework_scanner.core.config import Settings
from homework_scanner.domain import CaptureSession
from homework_scanner.infrastructure import DeviceHint


def _print_session(session: CaptureSession) -> None:
    print("\n--- Diagnostic trace ---")
    for line in session.trace.rendered():
        print(line)
    print("\n--- Result ---")
    if session.outcome is None:
        return
    if session.outcome.ok:
        print(session.outcome.text)
    else:
        print(f"Error: {session.outcome.to_payload()['error']}")


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.deadline:
        settings.deadline_seconds = args.deadline
    settings.identity = args.identity or settings.identity or DEFAULT_IDENTITY
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    services = build_services(settings, with_camera=True)
    hint = DeviceHint(args.device)
    session: CaptureSession | None = None
    try:
        identity = await services.identity_provider.resolve(None)
        session = CaptureSession(identity=identity.user_id)
        while True:
            outcome = await services.pipeline.capture(session, identity, hint=hint, stream=session.stream)
            _print_session(session)

            if args.once or not sys.stdin.isatty():
                return 0 if outcome.ok else 1
            if input("\nRetake? [y/N] ").strip().lower() not in {"y", "yes"}:
                return 0 if outcome.ok else 1

            # The camera stays open across retakes; only the session is renewed.
            session = session.reset()
            if session.stream is not None:
                session.stream.resume()
    finally:
        if session is not None and session.stream is not None:
            session.stream.close()
        await services.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Photograph a document with the local camera and extract its text")
    parser.add_argument("--device", choices=[hint.value for hint in DeviceHint], default=DeviceHint.DESKTOP.value)
    parser.add_argument("--identity", help="Storage namespace for uploaded frames (defaults to SCANNER_IDENTITY)")
    parser.add_argument("--deadline", type=float, help="Cancel the scan after this many seconds")
    parser.add_argument("--once", action="store_true", help="Do not offer a retake")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
