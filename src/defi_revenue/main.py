"""CLI entrypoint for defi-revenue."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import typer

from .logger import setup_logging
from .protocols import Protocol
from .settings import Network, RevenueSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Per-user protocol revenue and referral eligibility tooling.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to a TOML config file (can include [defi_revenue] table).",
    ),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    ),
]
ProtocolOption = Annotated[
    Protocol,
    typer.Option(
        "--protocol",
        "-p",
        case_sensitive=False,
        help="Protocol to compute for.",
    ),
]
NetworkOption = Annotated[
    list[Network] | None,
    typer.Option(
        "--network",
        "-n",
        help="Network to read the registry on; repeat for several (default: all).",
    ),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("defi_revenue")


def _build_state(config_path: Path | None, log_level: str | None) -> AppState:
    if config_path:
        os.environ["DEFI_REVENUE_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = RevenueSettings(**init_kwargs)
    setup_logging(settings.log_level)
    return AppState(settings=settings, logger=_build_logger())


def _from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _run(state: AppState, coro) -> object:
    """Run ``coro``; any failure is logged and turned into exit code 1."""
    try:
        return asyncio.run(coro)
    except Exception as exc:
        state.logger.error("%s: %s", type(exc).__name__, exc)
        state.logger.debug("Traceback", exc_info=True)
        raise typer.Exit(code=1) from exc


@app.command("calculate-revenue")
def calculate_revenue(
    protocol: ProtocolOption,
    input_path: Annotated[
        Path,
        typer.Option(
            "--input",
            "-i",
            exists=True,
            dir_okay=False,
            help="CSV file of user addresses.",
        ),
    ],
    output_path: Annotated[
        Path,
        typer.Option(
            "--output", "-o", help="Output file (.csv or .json)."
        ),
    ],
    start_timestamp: Annotated[
        int,
        typer.Option(
            "--start-timestamp", "-s", help="Window start, unix epoch milliseconds."
        ),
    ],
    end_timestamp: Annotated[
        int,
        typer.Option(
            "--end-timestamp", "-e", help="Window end, unix epoch milliseconds."
        ),
    ],
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
    summary: Annotated[
        bool,
        typer.Option(
            "--summary/--no-summary",
            help="Print a table of the results to stderr.",
        ),
    ] = True,
):
    """Compute each address's revenue for a protocol over a time window."""
    state = _build_state(config_path, log_level)
    if show_config:
        typer.echo(json.dumps(state.settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    from .pipeline.io import read_addresses, write_revenue
    from .pipeline.run import run_revenue

    addresses = read_addresses(input_path)
    start = _from_epoch_ms(start_timestamp)
    end = _from_epoch_ms(end_timestamp)
    results = _run(state, run_revenue(state, protocol, addresses, start, end))
    write_revenue(output_path, results)
    state.logger.info("Wrote results to %s", output_path)
    if summary:
        from .pipeline.summary import print_revenue_summary

        print_revenue_summary(protocol.value, start, end, results)


@app.command("fetch-referrals")
def fetch_referrals(
    protocol: ProtocolOption,
    output_path: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output CSV file."),
    ] = Path("filtered_referrals.csv"),
    network: NetworkOption = None,
    apply_filter: Annotated[
        bool,
        typer.Option(
            "--filter/--no-filter",
            help="Apply the protocol's eligibility filter to the fetched referrals.",
        ),
    ] = True,
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Fetch registered referrals, keeping the earliest per user."""
    state = _build_state(config_path, log_level)

    from .pipeline.io import write_referrals
    from .pipeline.run import run_fetch_referrals

    events = _run(
        state,
        run_fetch_referrals(
            state, protocol, network or list(Network), apply_filter=apply_filter
        ),
    )
    write_referrals(output_path, events)
    state.logger.info("Wrote %d referrals to %s", len(events), output_path)


@app.command("filter-referrals")
def filter_referrals(
    protocol: ProtocolOption,
    input_path: Annotated[
        Path,
        typer.Option(
            "--input",
            "-i",
            exists=True,
            dir_okay=False,
            help="CSV file of user_address,timestamp rows.",
        ),
    ],
    output_path: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output CSV file."),
    ] = Path("rewards_processed.csv"),
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Keep the referrals whose users pass the protocol's eligibility filter."""
    state = _build_state(config_path, log_level)

    from .pipeline.io import read_referrals, write_filtered_referrals
    from .pipeline.run import run_filter

    events = read_referrals(input_path, protocol.value)
    kept = _run(state, run_filter(state, protocol, events))
    write_filtered_referrals(output_path, kept)
    state.logger.info("Kept %d of %d referrals", len(kept), len(events))


@app.command("referrer-user-count")
def referrer_user_count(
    protocol: ProtocolOption,
    output_path: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output CSV file of referrer,count rows."),
    ],
    referrer_ids: Annotated[
        list[str] | None,
        typer.Option(
            "--referrer-id",
            "-r",
            help="Referrer ID to count; repeat for several (default: all registered).",
        ),
    ] = None,
    network: NetworkOption = None,
    config_path: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Count eligible referrals per referrer."""
    state = _build_state(config_path, log_level)

    from .pipeline.io import write_referrer_counts
    from .pipeline.run import run_referrer_user_count

    counts = _run(
        state,
        run_referrer_user_count(
            state, protocol, network or list(Network), referrer_ids or None
        ),
    )
    write_referrer_counts(output_path, counts)
    state.logger.info("Wrote counts for %d referrers to %s", len(counts), output_path)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
