#!/usr/bin/env python3
"""
Command-line entry point.

Reads `{data_dir}/config.json`, converts the configured input folder and
exits with 0 on success, 1 on a processor (user) error and 2 on an
unexpected (application) error.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from json2csv.common.exceptions import Json2CsvError
from json2csv.common.logging_config import clear_run_id, set_run_id, setup_logging
from json2csv.common.metrics import write_metrics_textfile
from json2csv.config.parameters import load_config
from json2csv.config.settings import get_settings
from json2csv.processor import Processor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USER_ERROR = 1
EXIT_APP_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert JSON files to CSV tables with manifests.")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Data directory with config.json, in/ and out/ (default: $KBC_DATADIR or /data)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    settings = get_settings()

    data_dir = Path(args.data_dir or settings.data_dir)
    json_format = settings.log_format.lower() == "json"
    setup_logging(args.log_level or settings.log_level, json_format=json_format)
    run_id = set_run_id()

    exit_code = EXIT_OK
    try:
        config = load_config(data_dir / "config.json")
        if config.parameters.debug:
            setup_logging("DEBUG", json_format=json_format)

        summary = Processor(config.parameters).convert(data_dir)
        logger.info(
            f"Conversion finished: {summary['documents']} documents, "
            f"{summary['rows']} rows, {len(summary['tables'])} tables"
        )
    except Json2CsvError as e:
        logger.error(str(e))
        exit_code = EXIT_USER_ERROR
    except Exception:
        logger.exception("Unexpected error during conversion")
        exit_code = EXIT_APP_ERROR
    finally:
        if settings.metrics_enabled and settings.metrics_textfile:
            try:
                write_metrics_textfile(settings.metrics_textfile)
            except OSError as e:
                logger.warning(f"Failed to write metrics to {settings.metrics_textfile}: {e}")
        logger.debug(f"Run {run_id} finished with exit code {exit_code}")
        clear_run_id()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
