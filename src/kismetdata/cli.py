"""CLI entrypoint for kismetdata."""

import argparse
import getpass
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from kismetdata.config.loader import load_config
from kismetdata.database.snapshot_client import KismetDBClient
from kismetdata.errors import ConfigurationError, KismetDataError
from kismetdata.models import DB_MODE, REST_MODE, ToolConfig
from kismetdata.parsing.filters import parse_filter_spec
from kismetdata.reader import RecordReader
from kismetdata.retrieval.rest_client import KismetRestClient, validate_rest_url
from kismetdata.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2

FILTER_HELP = (
    "With --rest-url: space separated Kismet tracked fields (see /system/tracked_fields.html). "
    "With --db-file: space separated table/column names, e.g. "
    "'devices/devmac devices/avg_lat'. All db filters must use the same table."
)


def select_mode(rest_url: Optional[str], db_file: Optional[str]) -> str:
    """Exactly one of the REST URL or database file must be given."""
    if bool(rest_url) == bool(db_file):
        raise ConfigurationError("Please choose either database or rest mode.")
    return REST_MODE if rest_url else DB_MODE


def prompt_credentials() -> Tuple[str, str]:
    """Read credentials from KISMET_USERNAME/KISMET_PASSWORD or prompt for them."""
    try:
        username = os.environ.get("KISMET_USERNAME") or input("Kismet username: ").strip()
        password = os.environ.get("KISMET_PASSWORD") or getpass.getpass("Kismet password: ")
    except EOFError as e:
        raise ConfigurationError("Failed to read username or password") from e
    if not username or not password:
        raise ConfigurationError("You must specify a username and password!")
    return username, password


def open_reader(args: argparse.Namespace, config: ToolConfig) -> RecordReader:
    """
    Build the reader for whichever backend the arguments select.

    REST URL and filters are validated before credentials are requested.
    """
    mode = select_mode(args.rest_url, args.db_file)

    if mode == DB_MODE:
        query = parse_filter_spec(args.filter, mode)
        logger.debug(f"Opening snapshot {args.db_file}")
        return KismetDBClient.from_filter(args.db_file, query, settings=config.snapshot)

    print(f"Kismet URL: {args.rest_url}")
    validate_rest_url(args.rest_url)
    query = parse_filter_spec(args.filter, mode)
    username, password = prompt_credentials()
    logger.debug("Creating Kismet client")
    return KismetRestClient.open(
        args.rest_url,
        username,
        password,
        query,
        settings=config.rest,
    )


def print_elements(reader: RecordReader) -> int:
    """Print every record from ``reader`` until the stream ends. Returns the count."""
    stream = reader.elements()
    while True:
        record = stream.next_record()
        if not record.present:
            break
        print(f"Got Elem {stream.count} ID: {record.identifier} with coords: {record.latitude} {record.longitude}")
    return stream.count


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    with open_reader(args, config) as reader:
        count = print_elements(reader)
    logger.info(f"Read {count} records from {reader.backend} backend")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kismetdata",
        description="Stream device ids and coordinates from Kismet",
    )
    parser.add_argument(
        "--rest-url",
        type=str,
        default="",
        help="URL of the Kismet REST API",
    )
    parser.add_argument(
        "--db-file",
        type=str,
        default="",
        help="Local Kismet sqlite3 log file",
    )
    parser.add_argument(
        "--filter",
        type=str,
        default="",
        help=FILTER_HELP,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to kismetdata.config.yaml (default: ./kismetdata.config.yaml if present)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug output",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return run(args)
    except ConfigurationError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except KismetDataError as e:
        logger.error(f"Failed to read from Kismet: {e}", exc_info=args.verbose)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
