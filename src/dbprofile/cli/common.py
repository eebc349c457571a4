"""Shared CLI utilities and constants."""

from __future__ import annotations

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from dbprofile.core.config import get_settings
from dbprofile.core.logging import configure_logging

# Load .env file from current directory (DBPROFILE_* settings)
load_dotenv()

# Shared console instance
console = Console()
# Logs and errors go to stderr so JSON on stdout stays parseable
err_console = Console(stderr=True)

JsonFlag = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output the report as JSON",
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v=INFO, -vv=DEBUG with SQL)",
    ),
]

LogFormatOption = Annotated[
    str | None,
    typer.Option(
        "--log-format",
        help="Log output format (console or json; default: DBPROFILE_LOG_FORMAT)",
    ),
]


def setup_logging(verbosity: int = 0, log_format: str | None = None) -> None:
    """Configure structured logging based on verbosity level.

    Without ``-v`` the level comes from DBPROFILE_LOG_LEVEL; without
    ``--log-format`` the format comes from DBPROFILE_LOG_FORMAT.

    Args:
        verbosity: 0=settings level, 1=INFO, 2+=DEBUG
        log_format: "console" for development, "json" for production/cloud
    """
    settings = get_settings()
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity >= 1:
        level = "INFO"
    else:
        level = settings.log_level

    log_format = log_format or settings.log_format
    configure_logging(
        log_level=level,
        log_format=log_format,
        show_timestamps=verbosity >= 1,
        color=log_format == "console",
    )
