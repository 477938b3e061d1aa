"""
Centralized logging configuration.
Provides structured logging for sync runs: per-pair outcomes, orphan reports and run summaries.
"""
import logging
import logging.config
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.
    Converts log records to JSON format for easy parsing and analysis.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            log_entry.update(extra_data)
        
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class KeyValueFormatter(logging.Formatter):
    """Console formatter appending structured fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extra_data = getattr(record, 'extra_data', None)
        if not extra_data:
            return base
        fields = " ".join(f"{k}={v}" for k, v in extra_data.items())
        return f"{base} | {fields}"


class StructuredLogger:
    """
    Wrapper around standard logger to provide structured logging methods.
    """
    
    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
    
    def _log_with_extra(self, level: int, message: str, **kwargs):
        """Log with extra structured data."""
        extra_data = {k: v for k, v in kwargs.items() if v is not None}
        self.logger.log(level, message, extra={"extra_data": extra_data})
    
    def info(self, message: str, **kwargs):
        self._log_with_extra(logging.INFO, message, **kwargs)
    
    def warning(self, message: str, **kwargs):
        self._log_with_extra(logging.WARNING, message, **kwargs)
    
    def error(self, message: str, **kwargs):
        self._log_with_extra(logging.ERROR, message, **kwargs)
    
    def debug(self, message: str, **kwargs):
        self._log_with_extra(logging.DEBUG, message, **kwargs)

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True
) -> None:
    """
    Setup logging configuration for a sync run.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for JSON log output
        enable_console: Whether to log to stderr
    """
    
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JSONFormatter,
            },
            "standard": {
                "()": KeyValueFormatter,
                "fmt": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {},
        "loggers": {
            "healthkube": {
                "level": log_level,
                "handlers": [],
                "propagate": False
            },
            # Client libraries are chatty at INFO/DEBUG
            "kubernetes": {
                "level": "WARNING",
                "handlers": [],
                "propagate": False
            },
            "urllib3": {
                "level": "WARNING",
                "handlers": [],
                "propagate": False
            },
            "aiohttp": {
                "level": "WARNING",
                "handlers": [],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": []
        }
    }
    
    # stdout is reserved for the run summary
    if enable_console:
        config["handlers"]["console"] = {
            "class": "logging.StreamHandler",
            "stream": sys.stderr,
            "formatter": "standard",
            "level": log_level
        }
        for name in config["loggers"]:
            config["loggers"][name]["handlers"].append("console")
        config["root"]["handlers"].append("console")
    
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "formatter": "json",
            "level": log_level
        }
        for name in config["loggers"]:
            config["loggers"][name]["handlers"].append("file")
        config["root"]["handlers"].append("file")
    
    logging.config.dictConfig(config)

def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.
    
    Args:
        name: Logger name (typically __name__)
    
    Returns:
        StructuredLogger instance
    """
    if not name.startswith("healthkube"):
        name = f"healthkube.{name}"
    return StructuredLogger(name)

def log_sync_event(
    event_type: str,
    details: Dict[str, Any],
    run_id: Optional[str] = None
) -> None:
    """
    Log a sync-level event (run started, run finished, orphan found).
    
    Args:
        event_type: Type of event (e.g., 'sync_started', 'sync_completed')
        details: Event-specific details
        run_id: Identifier of the sync run for correlating records
    """
    audit_logger = get_logger("audit")
    audit_logger.info(
        f"Sync event: {event_type}",
        event_type=event_type,
        run_id=run_id,
        **details
    )

def log_performance(
    operation: str,
    duration_ms: float,
    additional_data: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log performance metrics.
    
    Args:
        operation: Operation name
        duration_ms: Duration in milliseconds
        additional_data: Additional context data
    """
    perf_logger = get_logger("performance")
    data = {"duration_ms": duration_ms}
    if additional_data:
        data.update(additional_data)
    
    perf_logger.info(
        f"Performance: {operation}",
        operation=operation,
        **data
    )
