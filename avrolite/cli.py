"""Command line tools for inspecting container files.

Usage:
    avrolite getschema FILE
    avrolite getmeta FILE
    avrolite tojson FILE [--reader-schema AVSC] [--pretty]

Options:
    --config PATH          YAML configuration file (log level, text output)
    --verbose, -v          Log at DEBUG level to stderr

Exit Codes:
    0 - Success
    1 - The file or schema could not be read
    2 - Invalid arguments
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from avrolite import datafile
from avrolite.config import AvroliteConfig
from avrolite.exceptions import AvroliteException
from avrolite.logging import configure_logging
from avrolite.schema import load_schema
from avrolite.serialization.json import JsonEncoder

PRETTY_INDENT = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="avrolite",
        description="Inspect avrolite container files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at DEBUG level to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    getschema = subparsers.add_parser("getschema", help="Print the writer schema")
    getschema.add_argument("file", help="Container file")
    getschema.set_defaults(handler=_get_schema)

    getmeta = subparsers.add_parser("getmeta", help="Print the metadata, one key per line")
    getmeta.add_argument("file", help="Container file")
    getmeta.set_defaults(handler=_get_meta)

    tojson = subparsers.add_parser("tojson", help="Print every record as a line of JSON")
    tojson.add_argument("file", help="Container file")
    tojson.add_argument(
        "--reader-schema",
        help="Schema file (.avsc) to resolve records against",
    )
    tojson.add_argument(
        "--pretty",
        action="store_true",
        help=f"Indent output by {PRETTY_INDENT} spaces",
    )
    tojson.set_defaults(handler=_to_json)
    return parser


def _get_schema(args: argparse.Namespace, config: AvroliteConfig) -> None:
    with datafile.DataFileReader(args.file) as reader:
        print(json.dumps(reader.writer_schema.to_json(), indent=PRETTY_INDENT))


def _get_meta(args: argparse.Namespace, config: AvroliteConfig) -> None:
    with datafile.DataFileReader(args.file) as reader:
        for key, value in reader.metadata.items():
            print(f"{key}\t{value.decode('utf-8', errors='backslashreplace')}")


def _to_json(args: argparse.Namespace, config: AvroliteConfig) -> None:
    reader_schema = load_schema(args.reader_schema) if args.reader_schema else None
    indent = PRETTY_INDENT if args.pretty else config.text.indent
    with datafile.DataFileReader(args.file, reader_schema) as reader:
        encoder = JsonEncoder(
            sys.stdout,
            reader_schema or reader.writer_schema,
            indent=indent,
            sort_keys=config.text.sort_keys,
        )
        for record in reader:
            encoder.write(record)
        encoder.flush()


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line tool.

    Returns:
        The process exit code.
    """
    args = build_parser().parse_args(argv)
    try:
        config = AvroliteConfig.from_yaml(args.config) if args.config else AvroliteConfig()
        level = logging.DEBUG if args.verbose else config.log_level_number
        configure_logging(level=level)
        args.handler(args, config)
    except (AvroliteException, OSError) as e:
        print(f"avrolite: error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
