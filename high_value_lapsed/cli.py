"""Command line entry point for the high-value lapsed segmentation."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from high_value_lapsed.foundation import (
    ConfigurationError,
    DataIntegrityError,
    JsonRecordSource,
    SegmentationConfig,
)
from high_value_lapsed.pandas import report_to_dataframe
from high_value_lapsed.segmentation import run_segmentation

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_INVALID_INPUT = 2


def _resolve_output(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output path {output_path} must reside within the current working directory"
        )
    return output_path


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "List top-decile customers by completed spend whose last completed "
            "order is at or before reference date minus the recency window."
        )
    )
    parser.add_argument(
        "input",
        type=Path,
        help="JSON export with 'customers', 'orders' and 'order_items' arrays",
    )
    parser.add_argument(
        "--reference-date",
        help=(
            "Reference date (ISO format: YYYY-MM-DD or full timestamp). A date without "
            "an offset is read as UTC when the export has timezone-aware orders. "
            "Defaults to $HVL_REFERENCE_DATE."
        ),
    )
    parser.add_argument(
        "--recency-window",
        help="Recency window such as 6M, 180D, 26W or 1Y (default: 6M)",
    )
    parser.add_argument(
        "--top-percent",
        type=int,
        help="Share of paying customers treated as high value (default: 10)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional output path; .csv writes CSV, anything else JSON.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for messages on stderr (default: INFO)",
    )
    return parser


def _load_config(args: argparse.Namespace) -> SegmentationConfig:
    if args.reference_date is None:
        env_config = SegmentationConfig.from_env()
        return SegmentationConfig.build(
            reference_date=env_config.reference_date,
            recency_window=(
                args.recency_window
                if args.recency_window is not None
                else env_config.recency_window
            ),
            top_percent=(
                args.top_percent if args.top_percent is not None else env_config.top_percent
            ),
        )
    return SegmentationConfig.build(
        reference_date=args.reference_date,
        recency_window=args.recency_window,
        top_percent=args.top_percent,
    )


def high_value_lapsed_cli(argv: list[str] | None = None) -> int:
    """Write the high-value lapsed list for a record-store export.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 2 for invalid data, configuration or an unreadable input)
    """
    args = _build_parser().parse_args(argv)
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr, level=args.log_level)

    try:
        config = _load_config(args)
        logger.info(f"Loading records from {args.input}")
        source = JsonRecordSource(args.input)
        result = run_segmentation(source, config)
    except (ConfigurationError, DataIntegrityError) as exc:
        logger.error(f"Segmentation aborted: {exc}")
        return EXIT_INVALID_INPUT
    except (OSError, ValueError) as exc:
        logger.error(f"Cannot read input {args.input}: {exc}")
        return EXIT_INVALID_INPUT

    logger.info(
        f"{result.lapsed_count} high-value lapsed customers "
        f"({result.top_decile_count} high value of {result.qualifying_customers} paying, "
        f"cutoff {result.cutoff.date()})"
    )

    if args.output is None:
        # stdout fallback enables piping in shell usage.
        json.dump(result.as_dict(), fp=sys.stdout, indent=2, sort_keys=True)
        print()
        return EXIT_OK

    output_path = _resolve_output(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".csv":
        report_to_dataframe(result.records).to_csv(output_path, index=False)
    else:
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(result.as_dict(), fh, indent=2, sort_keys=True)
    logger.info(f"Report written to {output_path}")
    return EXIT_OK


def main() -> None:
    raise SystemExit(high_value_lapsed_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
