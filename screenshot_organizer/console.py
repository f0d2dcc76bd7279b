"""Operator-facing console output shared by the catalog loader and organizer."""

from __future__ import annotations

import sys
import threading


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"

    @classmethod
    def disable(cls) -> None:
        """Disable colors (for non-TTY output)."""
        cls.RESET = ""
        cls.BOLD = ""
        cls.DIM = ""
        cls.GREEN = ""
        cls.YELLOW = ""
        cls.RED = ""
        cls.CYAN = ""
        cls.GRAY = ""


class Logger:
    """Simple logger with verbosity control.

    Worker threads report through the same instance, so every line is
    written under a lock.
    """

    def __init__(self, verbosity: int = 1, dry_run: bool = False) -> None:
        self.verbosity = verbosity
        self.dry_run = dry_run
        self._lock = threading.Lock()

        # Disable colors if not a TTY
        if not sys.stdout.isatty():
            Colors.disable()

    def _emit(self, message: str, stream=None) -> None:
        with self._lock:
            print(message, file=stream or sys.stdout, flush=True)

    def info(self, message: str) -> None:
        """Log info message."""
        if self.verbosity >= 1:
            prefix = "[DRY-RUN] " if self.dry_run else ""
            self._emit(f"{prefix}{message}")

    def success(self, message: str) -> None:
        """Log success message."""
        if self.verbosity >= 1:
            self._emit(f"{Colors.GREEN}✓{Colors.RESET} {message}")

    def warn(self, message: str) -> None:
        """Log warning message."""
        if self.verbosity >= 1:
            self._emit(f"{Colors.YELLOW}⚠{Colors.RESET} {message}")

    def error(self, message: str) -> None:
        """Log error message."""
        self._emit(f"{Colors.RED}✗{Colors.RESET} {message}", sys.stderr)

    def progress(self, message: str) -> None:
        """Log transfer progress."""
        if self.verbosity >= 1:
            self._emit(f"{Colors.CYAN}↓{Colors.RESET} {message}")

    def skip(self, message: str) -> None:
        """Log skip message."""
        if self.verbosity >= 2:
            self._emit(f"{Colors.GRAY}⊘ {message}{Colors.RESET}")

    def verbose(self, message: str) -> None:
        """Log verbose message."""
        if self.verbosity >= 2:
            self._emit(f"{Colors.DIM}{message}{Colors.RESET}")

    def header(self, message: str) -> None:
        """Log header message."""
        if self.verbosity >= 1:
            self._emit(f"\n{Colors.BOLD}=== {message} ==={Colors.RESET}")
