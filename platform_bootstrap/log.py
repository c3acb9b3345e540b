"""Logging and console helpers shared by the bootstrap and the command surface."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
BLUE = "\033[0;34m"
CYAN = "\033[36m"
RESET = "\033[0m"

RULE = "━" * 47


class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: BLUE,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED,
    }

    def __init__(self, use_color: bool) -> None:
        super().__init__("[%(asctime)s] %(levelname)s %(message)s", datefmt="%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base
        color = self.COLORS.get(record.levelno, "")
        return f"{color}{base}{RESET}"


def build_logger(verbose: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    logger = logging.getLogger("platform_bootstrap")
    stream = stream or sys.stderr
    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(ColorFormatter(stream.isatty()))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


class Console:
    """Writes operator-facing tables and banners to stdout."""

    def __init__(self, stream: Optional[TextIO] = None, use_color: Optional[bool] = None) -> None:
        self.stream = stream or sys.stdout
        self.use_color = self.stream.isatty() if use_color is None else use_color

    def color(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        return f"{color}{text}{RESET}"

    def line(self, text: str = "") -> None:
        self.stream.write(f"{text}\n")
        self.stream.flush()

    def section(self, title: str) -> None:
        self.line()
        self.line(self.color(RULE, BLUE))
        self.line(self.color(f"  {title}", BLUE))
        self.line(self.color(RULE, BLUE))

    def heading(self, title: str) -> None:
        self.line(self.color(f"{title}:", BLUE))

    def row(self, label: str, value: object, width: int = 15) -> None:
        self.line(f"  {(label + ':').ljust(width)}{value}")
