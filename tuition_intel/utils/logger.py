"""
Logging infrastructure for extraction runs.

Provides:
- Millisecond timestamps with an aligned level column
- Optional phase prefix and file output
- Structured key=value suffixes
- Warning/error tracking for the end-of-run summary
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

# Third-party loggers routed through the unified format
EXTERNAL_LOGGERS = ["google_genai", "google_genai.models", "httpx", "httpcore", "LiteLLM", "urllib3"]
# Third-party loggers that are too chatty below WARNING
QUIET_LOGGERS = ["httpx", "httpcore", "LiteLLM"]


def _build_format(phase: Optional[str]) -> str:
    if phase:
        return f"%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
    return "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"


def _format_kwargs(message: str, kwargs: dict) -> str:
    if not kwargs:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return f"{message} [{formatted_data}]"


class MillisecondsFormatter(logging.Formatter):
    """Formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


class PipelineLogger:
    """
    Run-level logger for the CLI and batch runner.

    Library modules log through `logging.getLogger(__name__)`; this class
    owns handler setup and keeps warnings/errors for the summary panel.
    """

    def __init__(
        self,
        name: str = "tuition_intel",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
    ):
        """
        Initialize the run logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name (or absolute path)
            log_dir: Directory for relative log files (defaults to ./logs)
            phase: Optional phase prefix (e.g., "Extract", "Verify")
        """
        level = getattr(logging, log_level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.phase = phase

        # Handlers live on the root logger; the package logger propagates to it
        self.logger.propagate = True
        if self.logger.handlers:
            self.logger.handlers.clear()

        formatter = MillisecondsFormatter(_build_format(phase), datefmt="%Y-%m-%d %H:%M:%S,%f")
        self._configure_root_logger(level, formatter)
        self._configure_external_loggers(level)

        self.log_path: Optional[Path] = None
        if log_file:
            log_path = Path(log_file)
            if not log_path.is_absolute():
                log_path = (log_dir or Path.cwd() / "logs") / log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)  # Everything goes to the file
            file_handler.setFormatter(formatter)
            logging.getLogger().addHandler(file_handler)
            logging.getLogger().setLevel(logging.DEBUG)
            self.log_path = log_path
            self.info(f"Logging to file: {log_path}")

        self.errors = []
        self.warnings = []

    def _configure_root_logger(self, level: int, formatter: logging.Formatter):
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    def _configure_external_loggers(self, level: int):
        """Route SDK loggers through the root handler, quieting the noisy ones."""
        for lib_name in EXTERNAL_LOGGERS:
            lib_logger = logging.getLogger(lib_name)
            lib_logger.handlers.clear()
            lib_logger.propagate = True
            lib_logger.setLevel(level)

        for lib_name in QUIET_LOGGERS:
            logging.getLogger(lib_name).setLevel(max(level, logging.WARNING))

    def debug(self, message: str, **kwargs):
        self.logger.debug(_format_kwargs(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        self.logger.info(_format_kwargs(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _format_kwargs(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append(
            {
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def error(self, message: str, exception: Optional[BaseException] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _format_kwargs(message, kwargs)

        self.logger.error(message, exc_info=exception, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_extraction_complete(
        self,
        school: str,
        program: str,
        status: str,
        confidence: str,
        duration_seconds: float,
    ):
        """Log completion of one target."""
        message = (
            f"Completed extraction [school={school} program={program} status={status} "
            f"confidence={confidence} duration_seconds={round(duration_seconds, 2)}]"
        )
        self.logger.info(message, stacklevel=2)

    def log_run_start(self, num_targets: int):
        self.info("=" * 60)
        self.info(f"Extraction run started - processing {num_targets} targets", num_targets=num_targets)
        self.info("=" * 60)

    def log_run_complete(self, succeeded: int, not_found: int, failed: int, duration_seconds: float):
        self.info("=" * 60)
        self.info(
            "Extraction run completed",
            succeeded=succeeded,
            not_found=not_found,
            failed=failed,
            total=succeeded + not_found + failed,
            duration_seconds=round(duration_seconds, 2),
        )
        self.info("=" * 60)

    @contextmanager
    def time_target(self, school: str, program: str):
        """
        Time and log a single target.

        Usage:
            with logger.time_target("Acme University", "MBA"):
                record = service.extract("Acme University", "MBA")
        """
        start_time = datetime.now()
        self.debug("Starting extraction", school=school, program=program)
        try:
            yield
            duration = (datetime.now() - start_time).total_seconds()
            self.debug("Finished extraction", school=school, program=program, duration_seconds=round(duration, 2))
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            self.error(
                "Extraction raised",
                exception=e,
                school=school,
                program=program,
                duration_seconds=round(duration, 2),
            )
            raise

    def get_error_summary(self) -> dict:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def clear_tracking(self):
        self.errors = []
        self.warnings = []


class BatchRunContext:
    """
    Context manager for batch runs with automatic start/complete logging.

    Usage:
        with BatchRunContext(logger, num_targets=10) as ctx:
            for record in records:
                ctx.record(record.status.value)
    """

    def __init__(self, logger: PipelineLogger, num_targets: int):
        self.logger = logger
        self.num_targets = num_targets
        self.start_time = None
        self.succeeded = 0
        self.not_found = 0
        self.failed = 0

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.log_run_start(self.num_targets)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        self.logger.log_run_complete(
            succeeded=self.succeeded,
            not_found=self.not_found,
            failed=self.failed,
            duration_seconds=duration,
        )
        return False

    def record(self, status: str):
        """Count one finished target by its status value."""
        if status == "Success":
            self.succeeded += 1
        elif status == "Not Found":
            self.not_found += 1
        else:
            self.failed += 1
