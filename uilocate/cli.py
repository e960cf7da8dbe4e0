"""Command-line entry point: ``uilocate locate`` and ``uilocate serve``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from .core.config import config
from .core.errors import CropGenerationError, OracleTransportError
from .core.locator import MODES, ElementLocator
from .core.logger import log


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uilocate",
        description="Locate clickable UI elements in a screenshot with a vision model",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    locate = sub.add_parser("locate", help="Analyse one screenshot")
    locate.add_argument("image", help="Path to the screenshot")
    locate.add_argument("--target", "-t", default=None,
                        help="Description of the element to prioritise")
    locate.add_argument("--mode", "-m", choices=MODES, default="progressive",
                        help="progressive (crop refinement) or feedback (overlay nudging)")
    locate.add_argument("--export", "-e", default=None,
                        help="Write the debug bundle to this JSON file")
    locate.add_argument("--json", action="store_true",
                        help="Print the full report as JSON")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.api_host)
    serve.add_argument("--port", type=int, default=config.api_port)
    return parser


def _print_report(report) -> None:
    print(f"Found {len(report.detections)} element(s) "
          f"with {report.total_api_calls} oracle call(s) [{report.analysis_method}]")
    for detection in report.detections:
        center = detection.center_coordinates
        flags = []
        if detection.refinement_successful:
            flags.append(f"refined@{detection.refinement_level}")
        if detection.refinement_failed:
            flags.append("not-found")
        if detection.slicing_error:
            flags.append("error")
        if detection.final_status:
            flags.append(detection.final_status)
        print(f"  - {detection.reference_name} ({detection.element_type}) "
              f"at ({center.x:.0f}, {center.y:.0f}) conf={detection.confidence} {' '.join(flags)}")


def _locate(args: argparse.Namespace) -> int:
    locator = ElementLocator()
    try:
        report = asyncio.run(locator.locate(args.image, target=args.target, mode=args.mode))
    except CropGenerationError as e:
        log.error(f"Cannot read image: {e}")
        return 2
    except OracleTransportError as e:
        log.error(f"Oracle unavailable: {e}")
        return 1
    except ValueError as e:
        log.error(f"Configuration error: {e}")
        return 2

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)

    if args.export:
        if locator.save_debug(args.export) is None:
            return 1
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse *argv* and run the selected sub-command."""
    args = _build_parser().parse_args(argv)
    if args.command == "locate":
        return _locate(args)
    return _serve(args)


if __name__ == "__main__":
    sys.exit(main())
