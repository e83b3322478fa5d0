"""Logging configuration for import runs, built on loguru sinks."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Dict, Optional, Union

from loguru import logger


VALID_LEVELS: frozenset[str] = frozenset(
    {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
)


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging system."""

    # File logging
    log_file: Optional[Path] = Path("gravity_well.log")
    log_level: str = "INFO"
    rotation_size: str = "10 MB"
    retention_count: int = 5
    compression: str = "zip"

    # Console logging
    console_enabled: bool = True
    console_level: str = "WARNING"
    console_format: str = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"

    file_format: str = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"

    slow_operation_threshold_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if self.log_level.upper() not in VALID_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
        if self.console_level.upper() not in VALID_LEVELS:
            raise ValueError(f"Invalid console log level: {self.console_level}")
        if self.retention_count < 1:
            raise ValueError("Retention count must be at least 1")
        if self.slow_operation_threshold_seconds <= 0:
            raise ValueError("Slow operation threshold must be positive")

    @classmethod
    def for_debug(cls, enabled: bool, log_file: Optional[Path] = None) -> LoggingConfig:
        """Build a config whose console level follows the debug toggle."""
        level = "DEBUG" if enabled else "WARNING"
        if log_file is None:
            return cls(console_level=level)
        return cls(log_file=log_file, console_level=level)


class StructuredLogger:
    """Installs loguru sinks and logs import operations with structured extras."""

    def __init__(self, config: LoggingConfig) -> None:
        self.config: LoggingConfig = config
        self._setup_logger()

    def _setup_logger(self) -> None:
        logger.remove()

        if self.config.console_enabled:
            logger.add(
                sys.stderr,
                level=self.config.console_level,
                format=self.config.console_format,
                colorize=True,
            )

        if self.config.log_file is not None:
            logger.add(
                str(self.config.log_file),
                level=self.config.log_level,
                format=self.config.file_format,
                rotation=self.config.rotation_size,
                retention=self.config.retention_count,
                compression=self.config.compression,
                serialize=False
            )

    def log_operation_start(self, operation: str, **context: Any) -> str:
        """Log the start of an operation and return its ID."""
        operation_id: str = f"{operation}_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}"

        logger.info(
            f"Operation started: {operation}",
            operation_id=operation_id,
            operation=operation,
            start_time=datetime.now().isoformat(),
            **context
        )

        return operation_id

    def log_operation_end(
        self,
        operation_id: str,
        operation: str,
        success: bool = True,
        error: Optional[BaseException] = None,
        **context: Any
    ) -> None:
        """Log the end of an operation.

        Args:
            operation_id: Operation ID from log_operation_start.
            operation: Name of the operation.
            success: Whether operation was successful.
            error: Exception if operation failed.
            **context: Additional context data.
        """
        log_data: Dict[str, Any] = {
            "operation_id": operation_id,
            "operation": operation,
            "success": success,
            "end_time": datetime.now().isoformat(),
            **context
        }

        if success:
            logger.success(f"Operation completed: {operation}", **log_data)
        else:
            logger.error(
                f"Operation failed: {operation}",
                error_type=type(error).__name__ if error else "Unknown",
                error_message=str(error) if error else "Unknown error",
                **log_data
            )

    def log_performance_metric(
        self,
        metric_name: str,
        value: Union[int, float],
        unit: str = "",
        **context: Any
    ) -> None:
        """Log a metric, warning when a duration crosses the slow threshold."""
        logger.info(
            f"Performance metric: {metric_name}",
            metric_name=metric_name,
            metric_value=value,
            metric_unit=unit,
            **context
        )

        if (metric_name.endswith('_duration_seconds') and
                value > self.config.slow_operation_threshold_seconds):
            logger.warning(
                f"Slow operation detected: {metric_name}",
                duration_seconds=value,
                threshold_seconds=self.config.slow_operation_threshold_seconds,
                **context
            )

    def log_import_outcome(
        self,
        file_path: Union[str, Path],
        status: str,
        failed: bool,
        **context: Any
    ) -> None:
        """Log the outcome of a single file import."""
        log_level = logger.warning if failed else logger.debug
        log_level(
            f"Import outcome: {status}",
            import_file=str(file_path),
            import_status=status,
            **context
        )


def setup_logging(config: Optional[LoggingConfig] = None) -> StructuredLogger:
    """Setup logging system with configuration.

    Args:
        config: Logging configuration. If None, uses default configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if config is None:
        config = LoggingConfig()

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)

    structured_logger: StructuredLogger = StructuredLogger(config)

    logger.debug(
        "Logging system initialized",
        log_file=str(config.log_file),
        log_level=config.log_level,
        console_level=config.console_level
    )

    return structured_logger


class LoggedOperation:
    """Context manager for logging operations with automatic timing."""

    def __init__(
        self,
        structured_logger: StructuredLogger,
        operation_name: str,
        **context: Any
    ) -> None:
        self.structured_logger: StructuredLogger = structured_logger
        self.operation_name: str = operation_name
        self.context: Dict[str, Any] = context
        self.operation_id: Optional[str] = None
        self.start_time: Optional[datetime] = None

    def __enter__(self) -> LoggedOperation:
        self.start_time = datetime.now()
        self.operation_id = self.structured_logger.log_operation_start(
            self.operation_name,
            **self.context
        )
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        _: Optional[TracebackType]
    ) -> None:
        if self.start_time and self.operation_id:
            duration_seconds: float = (datetime.now() - self.start_time).total_seconds()

            self.structured_logger.log_performance_metric(
                f"{self.operation_name}_duration_seconds",
                duration_seconds,
                "seconds",
                operation_id=self.operation_id
            )

            self.structured_logger.log_operation_end(
                self.operation_id,
                self.operation_name,
                success=exc_type is None,
                error=exc_val,
                duration_seconds=duration_seconds,
                **self.context
            )
