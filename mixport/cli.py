"""Export Mixpanel events for one day or a range of days.

Every configured product (or those named with ``--products``) is exported
concurrently into each sink enabled in the configuration file.
"""

from __future__ import annotations

import argparse
import asyncio
import functools
import typing as typ
from pathlib import Path

from mixport.common.dates import DateRange, parse_date, parse_range
from mixport.config import DEFAULT_CONFIG_PATH, ConfigError, MixportConfig, load_config
from mixport.export.runner import ExportRunOptions, ExportRunSummary, run_export
from mixport.logging import (
    LOG_LEVEL_ENV_VAR,
    configure_logging,
    get_logger,
    log_warning,
    resolve_log_level,
)
from mixport.mixpanel.client import MixpanelConfig, MixpanelExportClient
from mixport.sinks.factory import open_sinks

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from mixport.mixpanel.models import Credentials

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_EXPORT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Return the ``mixport`` argument parser."""
    parser = argparse.ArgumentParser(prog="mixport", description=__doc__)
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="path to the YAML configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "-d",
        "--date",
        default=None,
        help="day to export in YYYY/MM/DD (default: yesterday, UTC)",
    )
    parser.add_argument(
        "-r",
        "--range",
        dest="date_range",
        default=None,
        help="inclusive range to export in YYYY/MM/DD-YYYY/MM/DD; overrides --date",
    )
    parser.add_argument(
        "--products",
        default="",
        help="comma-separated products to export (default: all configured)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"log level (default: ${LOG_LEVEL_ENV_VAR} or INFO)",
    )
    return parser


def resolve_date_range(
    date: str | None,
    date_range: str | None,
    *,
    today: dt.date | None = None,
) -> DateRange:
    """Pick the range to export from the ``--date``/``--range`` options.

    Raises
    ------
    ValueError
        If either option is malformed.

    """
    if date_range:
        return parse_range(date_range)
    if date:
        return DateRange.single(parse_date(date))
    return DateRange.yesterday(today=today)


def split_products(raw: str) -> list[str]:
    """Split a ``--products`` value, ignoring blanks."""
    return [name.strip() for name in raw.split(",") if name.strip()]


def make_client_factory(
    config: MixportConfig,
) -> cabc.Callable[[Credentials], MixpanelExportClient]:
    """Return a factory building one export client per product."""
    mixpanel_config = MixpanelConfig.from_env(
        defaults=MixpanelConfig(
            base_url=config.export.base_url.rstrip("/"),
            timeout_s=config.export.timeout_s,
        )
    )

    def factory(credentials: Credentials) -> MixpanelExportClient:
        return MixpanelExportClient(credentials, config=mixpanel_config)

    return factory


async def export(
    config: MixportConfig,
    products: cabc.Sequence[Credentials],
    date_range: DateRange,
) -> ExportRunSummary:
    """Run the export for ``products`` over ``date_range``."""
    return await run_export(
        products,
        date_range,
        client_factory=make_client_factory(config),
        open_sinks=functools.partial(open_sinks, config, date_range=date_range),
        options=ExportRunOptions(buffer_size=config.export.buffer_size),
    )


def main(argv: list[str] | None = None) -> int:
    """Run ``mixport`` and return its exit status.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        0 when every product exported, 1 when any product failed, and 2 for
        usage or configuration errors.

    """
    args = build_parser().parse_args(argv)

    requested_level = resolve_log_level(args.log_level)
    level, invalid = configure_logging(requested_level)
    if invalid and requested_level:
        log_warning(
            logger, "Invalid log level %r; falling back to %s", requested_level, level
        )

    try:
        date_range = resolve_date_range(args.date, args.date_range)
    except ValueError as exc:
        print(f"mixport: {exc}")
        return EXIT_USAGE

    try:
        config = load_config(args.config)
        products = config.select_products(split_products(args.products))
        # Surface bad MIXPORT_* overrides before any product starts.
        make_client_factory(config)
    except (ConfigError, ValueError) as exc:
        print(f"mixport: configuration error in {args.config}:")
        for issue in getattr(exc, "issues", [str(exc)]):
            print(f"  - {issue}")
        return EXIT_USAGE

    summary = asyncio.run(export(config, products, date_range))
    if summary.ok:
        return EXIT_OK

    print(f"mixport: export failed for: {', '.join(summary.failures.products())}")
    return EXIT_EXPORT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
