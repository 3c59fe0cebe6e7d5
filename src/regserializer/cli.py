"""regserializer CLI: turn register records into log entry lines."""

import argparse
import json
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

logger = logging.getLogger("regserializer")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main():
    """Main CLI entry point for regserializer commands."""
    try:
        regserializer_version = get_version("register-serializer")
    except PackageNotFoundError:
        regserializer_version = "dev"

    parser = argparse.ArgumentParser(
        prog="regserializer",
        description="Serialize register records into add-item/append-entry log lines"
    )
    parser.add_argument("--version", action="version", version=f"regserializer {regserializer_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "fields_path",
        type=Path,
        help="Path to field metadata JSON"
    )
    parent_parser.add_argument(
        "--timestamp",
        default=None,
        help="Fixed ISO 8601 UTC timestamp for every entry (defaults to now)"
    )
    parent_parser.add_argument(
        "--on-error",
        choices=["fail", "skip"],
        default=None,
        help="fail: stop at the first bad record; skip: report it and continue"
    )
    parent_parser.add_argument(
        "--keyed",
        action="store_true",
        help="Write keyed entry lines (append-entry, user, key, timestamp, hash)"
    )
    parent_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write log lines to this file instead of stdout"
    )
    parent_parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a JSON run summary to this file"
    )
    parent_parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level for stderr (DEBUG, INFO, WARNING, ERROR)"
    )
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )

    subparsers = parser.add_subparsers(dest="command", help="Input type")

    tsv_parser = subparsers.add_parser(
        "tsv",
        help="Serialize rows of a tab-separated file",
        parents=[parent_parser]
    )
    tsv_parser.add_argument(
        "tsv_path",
        type=Path,
        help="Path to the tab-separated data file"
    )
    tsv_parser.add_argument(
        "--register",
        default=None,
        help="Register name; its field supplies the key for --keyed entries"
    )

    yaml_parser = subparsers.add_parser(
        "yaml",
        help="Serialize the YAML documents of a meta register directory",
        parents=[parent_parser]
    )
    yaml_parser.add_argument(
        "yaml_dir",
        type=Path,
        help="Directory of *.yaml documents, named after its register"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from .config import ErrorPolicy, Settings
    from .kernel.entry import EntryFormat

    try:
        overrides = {}
        if args.timestamp is not None:
            overrides["timestamp"] = args.timestamp
        if args.on_error is not None:
            overrides["on_error"] = args.on_error
        if args.keyed:
            overrides["entry_format"] = EntryFormat.KEYED
        if args.log_level is not None:
            overrides["log_level"] = args.log_level
        settings = Settings(**overrides)
    except ValidationError as e:
        print(f"Error: invalid settings: {e}", file=sys.stderr)
        sys.exit(1)

    level = "ERROR" if args.quiet else settings.log_level
    _configure_logging(level)

    def _run(stream):
        from .api import serialize_tsv, serialize_yaml
        from ._internal.io.fields import load_field_metadata

        fields = load_field_metadata(args.fields_path.resolve())
        if args.command == "tsv":
            if settings.entry_format is EntryFormat.KEYED and args.register is None:
                raise ValueError("--keyed needs --register for tsv input")
            return serialize_tsv(
                fields,
                args.tsv_path.resolve(),
                stream,
                timestamp=settings.timestamp,
                fmt=settings.entry_format,
                register_name=args.register,
                on_error=settings.on_error,
            )
        return serialize_yaml(
            args.yaml_dir,
            stream,
            timestamp=settings.timestamp,
            fmt=settings.entry_format,
            on_error=settings.on_error,
        )

    def _write_report(summary, report_path: Optional[Path]) -> None:
        if report_path is None:
            return
        report_path.parent.mkdir(parents=True, exist_ok=True)
        payload = summary.model_dump(mode="json")
        payload["ok"] = summary.skipped == 0
        # Byte-stable report: sorted keys, compact separators.
        text = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        report_path.write_text(text + "\n", encoding="utf-8")

    from .errors import RegSerializerError

    logger.info("run started")
    try:
        if args.output is not None:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            with open(args.output, "w", encoding="utf-8", newline="\n") as out:
                summary = _run(out)
        else:
            summary = _run(sys.stdout)
        _write_report(summary, args.report)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (RegSerializerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
    logger.info("run finished")

    if summary.skipped and settings.on_error is ErrorPolicy.SKIP and not args.quiet:
        print(f"[WARN] Skipped {summary.skipped} record(s)", file=sys.stderr)


if __name__ == "__main__":
    main()
