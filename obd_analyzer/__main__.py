"""CLI entry point: ``python -m obd_analyzer SCAN_JSON``.

Also ``--print-schema`` to dump the request-time output contract and
``--validate FILE`` to check a stored model reply against it.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

EXIT_OK = 0
EXIT_ANALYSIS_FAILED = 1
EXIT_BAD_INPUT = 2


def _configure_logging(level: str, fmt: str) -> None:
    """Set up structlog with console or JSON rendering."""
    import logging

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obd_analyzer",
        description="LLM-backed analysis of OBD-II vehicle scans",
    )
    parser.add_argument(
        "scan",
        nargs="?",
        type=Path,
        help="Path to a ScanInput JSON file (camelCase or snake_case keys)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--print-schema",
        action="store_true",
        help="Print the response_format sent to the inference endpoint",
    )
    mode.add_argument(
        "--validate",
        type=Path,
        metavar="FILE",
        help="Validate a stored model reply against the output contract",
    )
    return parser


def _dump(output) -> str:
    return output.model_dump_json(by_alias=True, indent=2)


async def _analyze(scan_path: Path, settings) -> int:
    from obd_analyzer.errors import RetriesExhaustedError
    from obd_analyzer.pipeline import AnalysisPipeline
    from obd_analyzer.schemas import ScanInput

    logger = structlog.get_logger("obd_analyzer")
    try:
        scan = ScanInput.model_validate_json(scan_path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        logger.error("scan_input_invalid", path=str(scan_path), error=str(exc))
        return EXIT_BAD_INPUT

    async with AnalysisPipeline.from_settings(settings) as pipeline:
        try:
            output = await pipeline.analyze(scan)
        except RetriesExhaustedError as exc:
            logger.error("analysis_failed", attempts=exc.attempts, error=str(exc))
            return EXIT_ANALYSIS_FAILED

    print(_dump(output))
    return EXIT_OK


def _validate(path: Path) -> int:
    from obd_analyzer.errors import InferenceError, SchemaViolationError
    from obd_analyzer.validate import validate_text

    logger = structlog.get_logger("obd_analyzer")
    try:
        output = validate_text(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.error("reply_unreadable", path=str(path), error=str(exc))
        return EXIT_BAD_INPUT
    except (InferenceError, SchemaViolationError) as exc:
        logger.error("reply_invalid", path=str(path), error=str(exc))
        return EXIT_ANALYSIS_FAILED

    print(_dump(output))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    from obd_analyzer.config import AnalyzerSettings

    settings = AnalyzerSettings()
    _configure_logging(settings.log_level, settings.log_format)

    if args.print_schema:
        from obd_analyzer.contract import response_format

        print(json.dumps(response_format(), indent=2))
        return EXIT_OK

    if args.validate is not None:
        return _validate(args.validate)

    if args.scan is None:
        parser.error("a scan JSON file is required unless --print-schema or --validate is given")

    logger = structlog.get_logger("obd_analyzer")
    logger.info(
        "analyzer_starting",
        version=__import__("obd_analyzer").__version__,
        model=settings.openai_model,
        max_attempts=settings.ai_max_attempts,
    )

    try:
        return asyncio.run(_analyze(args.scan, settings))
    except KeyboardInterrupt:
        logger.info("analyzer_interrupted")
        return EXIT_ANALYSIS_FAILED


if __name__ == "__main__":
    sys.exit(main())
