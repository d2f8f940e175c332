"""CLI entrypoints for repolens commands."""

from __future__ import annotations

import argparse
import json
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import ConfigError, load_config
from .llm.errors import BackendError, GenerationCancelled
from .logging import configure_logging, get_logger
from .metadata.github import MetadataError
from .models import AnalysisOutcome
from .orchestrator import AnalysisOrchestrator, build_orchestrator
from .presentation.parser import PresentationSectionParser
from .prompting.constants import SUPPORTED_LANGUAGES

logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .repolens.yml file or the directory containing it.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repolens",
        description="Generate architectural reports for GitHub repositories.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a GitHub repository and print the report.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_config_option(analyze_parser)
    analyze_parser.add_argument("repo_url", help="Repository URL, e.g. https://github.com/owner/repo.")
    analyze_parser.add_argument(
        "--lang",
        choices=SUPPORTED_LANGUAGES,
        default=None,
        help="Report language (defaults to the configured language).",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the report and its parsed sections as JSON.",
    )

    models_parser = subparsers.add_parser(
        "models",
        help="List generation models in the order they would be tried.",
    )
    _add_verbose_option(models_parser, suppress_default=True)
    _add_config_option(models_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP analysis service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def _run_analysis(
    orchestrator: AnalysisOrchestrator, repo_url: str, language: str | None
) -> AnalysisOutcome:
    # Ctrl-C sets the cancel event; the worker stops before its next backend attempt.
    cancel_event = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(orchestrator.run, repo_url, language, cancel_event=cancel_event)
        try:
            return future.result()
        except KeyboardInterrupt:
            logger.info("Interrupted; waiting for the current attempt to finish")
            cancel_event.set()
            return future.result()


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repolens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
        return

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    orchestrator = build_orchestrator(config)

    if args.command == "models":
        for candidate in orchestrator.client.resolver.resolve():
            suffix = f" ({candidate.api_version})" if candidate.api_version else ""
            print(f"{candidate.model}{suffix}")
        return

    if args.command == "analyze":
        language = args.lang or config.language
        try:
            outcome = _run_analysis(orchestrator, args.repo_url, language)
        except MetadataError as exc:
            parser.exit(1, f"repolens analyze failed: {exc}\n")
        except GenerationCancelled as exc:
            parser.exit(130, f"{exc}\n")
        except BackendError as exc:
            parser.exit(1, f"repolens analyze failed: {exc}\nRun with --verbose for more details.\n")

        if args.json:
            sections = PresentationSectionParser(language=language).parse(outcome.analysis)
            payload = {
                "analysis": outcome.analysis,
                "fallback": outcome.fallback,
                "reason": outcome.reason,
                "score": outcome.score,
                "model": outcome.model,
                "sections": [section.to_dict() for section in sections],
            }
            print(json.dumps(payload, indent=2, ensure_ascii=False))
        else:
            print(outcome.analysis)
        return

    parser.exit(1, "Unknown command\n")  # pragma: no cover - argparse enforces choices


if __name__ == "__main__":
    main(sys.argv[1:])
