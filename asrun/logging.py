# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Logging configuration for asrun.

Loguru is configured once by the CLI callback. Structured context is passed
as keyword arguments (``logger.info("Deploying", name=name)``) and rendered
as trailing ``key=value`` pairs.
"""

import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


COLORS = {
    "amber": "#E8A33D",  # Warnings
    "green": "#5B8A72",  # Success
    "muted": "#88A896",  # Timestamps, extras
    "dim": "#4A5C54",  # Separators
    "text": "#EFF8E2",  # Message text
    "red": "#B5452F",  # Errors
    "blue": "#5B9BD5",  # Info
}

RESET = "\033[0m"


def _log_format(record: "Record") -> str:
    """Build the loguru format string for a record.

    Args:
        record: Loguru record containing level, message and extras.

    Returns:
        Format string with loguru colour tags.
    """
    level = record["level"].name

    level_colors = {
        "TRACE": f"<fg {COLORS['dim']}>",
        "DEBUG": f"<fg {COLORS['muted']}>",
        "INFO": f"<fg {COLORS['blue']}>",
        "SUCCESS": f"<fg {COLORS['green']}>",
        "WARNING": f"<fg {COLORS['amber']}>",
        "ERROR": f"<fg {COLORS['red']}>",
        "CRITICAL": f"<fg {COLORS['red']}><bold>",
    }
    color = level_colors.get(level, f"<fg {COLORS['text']}>")
    close = "</>"

    fmt = (
        f"<fg {COLORS['muted']}>{{time:HH:mm:ss}}{close}"
        f" <fg {COLORS['dim']}>│{close} "
        f"{color}{{level: <8}}{close}"
        f"<fg {COLORS['dim']}>│{close} "
        f"<fg {COLORS['text']}>{{message}}{close}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent Loguru format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}")
        # Escape tags so paths like <home> are not read as colour markup
        extra_str = extra_str.replace("<", r"\<")
        fmt += f" <fg {COLORS['muted']}>│ {extra_str}{close}"

    fmt += "\n"

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Replace the default loguru handler with the asrun format.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_log_format,
        colorize=True,
    )


def _ansi_color(hex_color: str) -> str:
    """Convert a hex colour code to a 24-bit ANSI foreground escape."""
    hex_color = hex_color.lstrip("#")
    r, g, b = int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16)
    return f"\033[38;2;{r};{g};{b}m"


def log_run_environment(java_home: str | None, server_home: str) -> None:
    """Print the resolved JAVA_HOME and server home before launch.

    Args:
        java_home: JAVA_HOME used for the JVM, or None when java is taken from PATH.
        server_home: Installation root of the server.
    """
    green = _ansi_color(COLORS["green"])
    blue = _ansi_color(COLORS["blue"])
    muted = _ansi_color(COLORS["muted"])

    lines = [
        f"  {muted}JAVA_HOME:{RESET}   {blue}{java_home or '(from PATH)'}{RESET}",
        f"  {muted}SERVER_HOME:{RESET} {green}{server_home}{RESET}",
        "",
    ]
    sys.stderr.write("\n".join(lines) + "\n")
    sys.stderr.flush()
