"""Main module for the image workflow CLI."""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .core.clock import SystemClock
from .core.config import PipelineSettings
from .core.exceptions import ConfigurationError
from .core.logging_config import setup_logger
from .core.models import ExecutionState, ProcessingJob, isoformat
from .factories import PipelineFactory
from .handlers import handle_presign_request
from .orchestrator import guess_content_type


def build_factory(settings: PipelineSettings) -> PipelineFactory:
    return PipelineFactory(settings)


def load_settings(bucket: Optional[str] = None) -> PipelineSettings:
    environ = dict(os.environ)
    if bucket:
        environ["BUCKET_NAME"] = bucket
    return PipelineSettings.from_env(environ)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _presign(args: argparse.Namespace) -> int:
    factory = build_factory(load_settings(args.bucket))
    event = {
        "body": json.dumps(
            {
                "filename": args.filename,
                "contentType": args.content_type,
                "fileSize": args.file_size,
            }
        )
    }
    response = handle_presign_request(
        event, factory.create_presign_service(), factory.logger("cli")
    )
    _print_json(json.loads(response["body"]))
    return 0 if response["statusCode"] == 200 else 1


def _handle_event(args: argparse.Namespace) -> int:
    with open(args.event_file, "r", encoding="utf-8") as f:
        event: Dict[str, Any] = json.load(f)

    factory = build_factory(load_settings(args.bucket))
    summary = factory.create_orchestrator().handle_event(event)
    _print_json(summary.model_dump(mode="json"))
    return 0 if summary.failed == 0 else 1


def _process(args: argparse.Namespace) -> int:
    settings = load_settings(args.bucket)
    overrides: Dict[str, Any] = {}
    if args.width:
        overrides["resize_width"] = args.width
    if args.height:
        overrides["resize_height"] = args.height
    if args.adjustment is not None:
        overrides["exposure_adjustment"] = args.adjustment
    if args.ignore_aspect_ratio:
        overrides["maintain_aspect_ratio"] = False

    factory = build_factory(settings)
    head = factory.object_store().head_object(settings.bucket_name, args.key)
    job = ProcessingJob(
        bucket=settings.bucket_name,
        key=args.key,
        content_type=head.content_type or guess_content_type(args.key),
        size=head.content_length or 0,
        uploaded_at=isoformat(SystemClock().now()),
    )

    execution = factory.create_engine(**overrides).start_execution(job)
    _print_json(execution.model_dump(mode="json", by_alias=True, exclude_none=True))
    return 0 if execution.state == ExecutionState.SUCCEEDED else 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-workflow",
        description="Image Workflow - presigned uploads and validate/resize/exposure processing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Issue a presigned upload URL
  image-workflow presign --bucket my-bucket --filename photo.jpg \\
                         --content-type image/jpeg --file-size 1048576

  # Replay an S3 notification event through the orchestrator
  image-workflow handle-event event.json --bucket my-bucket

  # Run the workflow for one stored object
  image-workflow process --bucket my-bucket --key uploads/1700000000000-abc-photo.jpg

  # Show version
  image-workflow version
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    presign_parser = subparsers.add_parser("presign", help="Issue a presigned upload URL")
    presign_parser.add_argument("--bucket", default=None, help="Upload bucket (default: $BUCKET_NAME)")
    presign_parser.add_argument("--filename", required=True, help="Client file name")
    presign_parser.add_argument("--content-type", required=True, help="MIME type of the upload")
    presign_parser.add_argument("--file-size", type=int, required=True, help="Upload size in bytes")

    event_parser = subparsers.add_parser(
        "handle-event", help="Start workflows for an object-created notification event"
    )
    event_parser.add_argument("event_file", help="Path to a JSON notification event")
    event_parser.add_argument("--bucket", default=None, help="Bucket (default: $BUCKET_NAME)")

    process_parser = subparsers.add_parser("process", help="Run the workflow for one object")
    process_parser.add_argument("--bucket", required=True, help="Bucket holding the object")
    process_parser.add_argument("--key", required=True, help="Object key")
    process_parser.add_argument("--width", type=int, default=None, help="Resize width bound")
    process_parser.add_argument("--height", type=int, default=None, help="Resize height bound")
    process_parser.add_argument(
        "--ignore-aspect-ratio",
        action="store_true",
        help="Resize to the exact bounds instead of fitting inside them",
    )
    process_parser.add_argument(
        "--adjustment", type=float, default=None, help="Exposure adjustment in [-1, 1]"
    )

    for subparser in (presign_parser, event_parser, process_parser):
        subparser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")
    return parser


COMMANDS = {
    "presign": _presign,
    "handle-event": _handle_event,
    "process": _process,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``image-workflow`` command."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Image Workflow CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
        return

    setup_logger(level="DEBUG" if args.debug else None)
    try:
        exit_code = command(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        exit_code = 2
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
