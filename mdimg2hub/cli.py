from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from mdimg2hub.archive import ArchiveError, extract_archive, find_first_document
from mdimg2hub.config import DestinationConfig, load_destination_config
from mdimg2hub.pipeline import PipelineOutcome, process_document
from mdimg2hub.workspace import create_run_workspace

logger = logging.getLogger("mdimg2hub.cli")


def _add_destination_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--token", default=None, help="GitHub personal access token")
    parser.add_argument("--owner", default=None, help="GitHub repository owner")
    parser.add_argument("--repo", default=None, help="GitHub repository name")
    parser.add_argument("--branch", default=None, help="Repository branch (default: main)")
    parser.add_argument(
        "--images-path",
        default=None,
        help="Directory in the repository that receives images (default: images)",
    )
    parser.add_argument(
        "--use-cdn",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Address uploads through jsDelivr instead of the GitHub download URL",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Upload images referenced by Markdown documents to GitHub and rewrite the links.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    process_parser = subparsers.add_parser(
        "process", help="Relocate images of a Markdown file or ZIP bundle"
    )
    process_parser.add_argument("path", help="Markdown file or ZIP bundle")
    _add_destination_arguments(process_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the upload web service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to run the web server on")
    _add_destination_arguments(serve_parser)

    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def build_config(args: argparse.Namespace) -> DestinationConfig:
    return load_destination_config(
        token=args.token,
        owner=args.owner,
        repo=args.repo,
        branch=args.branch,
        images_path=args.images_path,
        use_cdn=args.use_cdn,
    )


def _resolve_document(path: Path) -> Path:
    if path.suffix.lower() != ".zip":
        return path

    run_id, workspace = create_run_workspace()
    logger.info("Extracting %s into run %s", path, run_id)
    document = find_first_document(extract_archive(path, workspace / "extract"))
    if document is None:
        raise ArchiveError("No Markdown files found in the ZIP archive.")
    return document


def _run_process(args: argparse.Namespace, config: DestinationConfig) -> int:
    try:
        document = _resolve_document(Path(args.path))
    except (ArchiveError, OSError, ValueError) as exc:
        outcome = PipelineOutcome(
            output_path=None,
            replaced_count=0,
            success=False,
            error=str(exc),
            error_class="document",
        )
    else:
        outcome = process_document(document, config)

    print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    if outcome.success:
        logger.info("Replaced %d image reference(s) -> %s", outcome.replaced_count, outcome.output_path)
        return 0
    return 1


def _run_serve(args: argparse.Namespace, config: DestinationConfig) -> int:
    import uvicorn

    from mdimg2hub import app as app_module

    config.validate()
    app_module.DESTINATION_CONFIG = config
    logger.info("Starting server on %s:%s for %s", args.host, args.port, config.repository_slug)
    uvicorn.run(app_module.app, host=args.host, port=args.port)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "serve":
        try:
            return _run_serve(args, config)
        except ValueError as exc:
            logger.error("%s", exc)
            return 2
    return _run_process(args, config)


if __name__ == "__main__":
    sys.exit(main())
