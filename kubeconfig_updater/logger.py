"""
Logging system for kube-config-updater
Writes run logs either to a dated log file or to a clean console stream
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from rich.console import Console
from rich.text import Text

from kubeconfig_updater.constants import LOG_DATE_FORMAT, LOG_TIME_FORMAT

console = Console()

LEVEL_STYLES = {
    "DEBUG": "dim",
    "INFO": "",
    "WARNING": "yellow",
    "ERROR": "bold red",
}


class SyncLogger:
    """
    Manages logging for updater runs
    - Writes to a log file when a log directory is configured
    - Otherwise prints to the console with level colors
    - Safe to call from worker threads
    """

    def __init__(
        self,
        operation: str = "run",
        log_dir: Optional[Path] = None,
        verbose: bool = False,
        output: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            operation: Operation name (e.g., 'run', 'probe')
            log_dir: Directory for log files, console output when None
            verbose: If True, DEBUG lines are emitted too
            output: Console to print to (defaults to the module console)
        """
        self.operation = operation
        self.verbose = verbose
        self.console = output or console
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.has_errors = False
        self.has_warnings = False
        self._lock = threading.Lock()

        if log_dir is not None:
            # Structure: {log_dir}/{date}/{time}_{operation}.log
            now = datetime.now()
            day_dir = Path(log_dir).expanduser() / now.strftime(LOG_DATE_FORMAT)
            day_dir.mkdir(parents=True, exist_ok=True)
            self.log_path = day_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"
            self.log_file = open(self.log_path, "a", buffering=1)
            self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
kube-config-updater log
{"=" * 80}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file or console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        if level == "DEBUG" and not self.verbose:
            return

        with self._lock:
            if level == "ERROR":
                self.has_errors = True
            elif level == "WARNING":
                self.has_warnings = True

            if self.log_file:
                timestamp = datetime.now().strftime("%H:%M:%S")
                self.log_file.write(f"[{timestamp}] [{level}] {message}\n")
                self.log_file.flush()
            else:
                self.console.print(Text(message, style=LEVEL_STYLES.get(level, "")))

    def debug(self, message: str):
        self.log(message, "DEBUG")

    def info(self, message: str):
        self.log(message, "INFO")

    def warning(self, message: str):
        self.log(message, "WARNING")

    def error(self, message: str):
        self.log(message, "ERROR")

    def success(self, message: str):
        """Log a success message"""
        self.log(f"✓ {message}", "INFO")

    def close(self):
        """Close log file"""
        with self._lock:
            if self.log_file:
                footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
                self.log_file.write(footer)
                self.log_file.close()
                self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.error(f"{exc_type.__name__}: {exc_val}" if exc_val else "Operation failed")
        self.close()
        return False  # Don't suppress exceptions


class NullLogger(SyncLogger):
    """Logger that discards everything. Used when no logger is passed."""

    def __init__(self):
        super().__init__(operation="null")

    def log(self, message: str, level: str = "INFO"):
        if level == "ERROR":
            self.has_errors = True
        elif level == "WARNING":
            self.has_warnings = True
