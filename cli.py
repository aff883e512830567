#!/usr/bin/env python3
"""
Command-line interface for the shipment status notifier.

Usage:
    uv run python cli.py [command] [options]

Commands:
    serve       Start the API server
    replay      Process a saved carrier webhook file
    classify    Show how carrier statuses are classified
    test        Run the test suite

Examples:
    uv run python cli.py serve --reload
    uv run python cli.py replay webhook.json --dry-run
    uv run python cli.py classify "Out_for_Delivery" SHPFR1
"""

import argparse
import json
import subprocess
import sys
from pathlib import Path


def run_classify(statuses: list[str]) -> None:
    """Print the class and commerce vocabulary for each status."""
    from commerce.vocabulary import event_status_for_text, tracking_status_for_text
    from shared.statuses import classify, normalize_status

    for raw in statuses:
        status_class = classify(raw)
        print(f"{raw!r:32} -> {status_class.value:18} "
              f"normalized={normalize_status(raw)!r} "
              f"event={event_status_for_text(raw)} tracking={tracking_status_for_text(raw)}")


def run_replay(path: str, dry_run: bool) -> None:
    """Process a webhook JSON file through the engine and print the summary."""
    from reconciliation.engine import build_engine
    from shared.channels import RecordingNotifier
    from shared.models import StatusWebhook
    from shared.settings import Settings, configure_logging

    file_path = Path(path)
    if not file_path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    with open(file_path, "r") as f:
        webhook = StatusWebhook.model_validate(json.load(f))

    settings = Settings.from_env()
    configure_logging(settings)
    engine = build_engine(settings, notifier=RecordingNotifier() if dry_run else None)
    try:
        summary = engine.orchestrator.process_batch(webhook.orders)
    finally:
        engine.close()

    print(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2))


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Shipment Status Notifier CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --reload
  %(prog)s replay webhook.json --dry-run
  %(prog)s classify "In Transit" DELIVERED
  %(prog)s test -v
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Replay command
    replay_parser = subparsers.add_parser("replay", help="Process a saved carrier webhook file")
    replay_parser.add_argument("file", help="JSON file with a status webhook body")
    replay_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Record messages in memory instead of sending them",
    )

    # Classify command
    classify_parser = subparsers.add_parser("classify", help="Classify carrier statuses")
    classify_parser.add_argument("statuses", nargs="+", help="Raw carrier statuses")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    args = parser.parse_args()

    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
    elif args.command == "replay":
        run_replay(args.file, args.dry_run)
    elif args.command == "classify":
        run_classify(args.statuses)
    elif args.command == "test":
        run_tests(args.pytest_args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
