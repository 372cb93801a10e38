#!/usr/bin/env python3
"""
Tashkeel Review Configuration & Logging Module
==============================================
Centralized configuration, structured logging, and the error taxonomy
shared by the diff engine, the suggestion chain and the review API.

Version: reads from version.json
"""

import os
import sys
import json
import logging
import uuid
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager
import threading

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_SIGNIFICANCE_THRESHOLD = 0.3   # Escalation ratio for sentence/word diffs
DEFAULT_DIFF_TIMEOUT = 2.0             # Seconds per diff-match-patch call
DEFAULT_MAX_TEXT_LENGTH = 200_000      # Characters accepted per text over HTTP
DEFAULT_MAX_LCS_CELLS = 4_000_000     # LCS table size above which lcs mode walks positionally
LINE_DIFF_MODES = ('positional', 'lcs')
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024   # 5MB max per log file
LOG_BACKUP_COUNT = 5                   # Number of log backup files to keep


# =============================================================================
# VERSION - Read from version.json (Single Source of Truth)
# =============================================================================
def _load_version():
    """Load version from version.json file."""
    version_file = Path(__file__).parent / 'version.json'
    try:
        if version_file.exists():
            with open(version_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
                return data.get('version', '1.0.0')
    except (OSError, ValueError):
        pass
    return '1.0.0'  # Fallback version

__version__ = _load_version()
VERSION = __version__
APP_NAME = "TashkeelReview"


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Application configuration with safe defaults."""

    # Server settings
    host: str = "127.0.0.1"  # Localhost only by default
    port: int = 5060
    debug: bool = False

    # Diff engine
    significance_threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD
    line_diff_mode: str = "positional"  # Options: positional, lcs
    diff_timeout: float = DEFAULT_DIFF_TIMEOUT
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH
    max_lcs_cells: int = DEFAULT_MAX_LCS_CELLS

    # Storage
    db_path: Path = field(default_factory=lambda: Path(__file__).parent / 'data' / 'tashkeel_review.db')

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')

    def __post_init__(self):
        """Normalize paths and apply environment overrides."""
        self.db_path = Path(self.db_path)
        self.log_dir = Path(self.log_dir)

        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Production never runs with debug output
        if os.environ.get('TR_ENV', 'development').lower() == 'production':
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load configuration from environment variables."""
        defaults = cls.__dataclass_fields__
        return cls(
            host=os.environ.get('TR_HOST', '127.0.0.1'),
            port=int(os.environ.get('TR_PORT', '5060')),
            debug=_env_bool('TR_DEBUG', 'false'),
            significance_threshold=float(os.environ.get('TR_SIGNIFICANCE', str(DEFAULT_SIGNIFICANCE_THRESHOLD))),
            line_diff_mode=os.environ.get('TR_LINE_DIFF_MODE', 'positional').lower(),
            diff_timeout=float(os.environ.get('TR_DIFF_TIMEOUT', str(DEFAULT_DIFF_TIMEOUT))),
            max_text_length=int(os.environ.get('TR_MAX_TEXT_LENGTH', str(DEFAULT_MAX_TEXT_LENGTH))),
            max_lcs_cells=int(os.environ.get('TR_MAX_LCS_CELLS', str(DEFAULT_MAX_LCS_CELLS))),
            db_path=Path(os.environ['TR_DB_PATH']) if os.environ.get('TR_DB_PATH') else defaults['db_path'].default_factory(),
            log_level=os.environ.get('TR_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('TR_LOG_FORMAT', 'text'),
            log_to_file=_env_bool('TR_LOG_TO_FILE', 'false'),
            log_dir=Path(os.environ['TR_LOG_DIR']) if os.environ.get('TR_LOG_DIR') else defaults['log_dir'].default_factory(),
        )

    def validate(self) -> tuple:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if not 0.0 <= self.significance_threshold <= 1.0:
            errors.append("Significance threshold must be between 0.0 and 1.0")

        if self.line_diff_mode not in LINE_DIFF_MODES:
            errors.append(f"Invalid line_diff_mode: {self.line_diff_mode}. Must be one of {', '.join(LINE_DIFF_MODES)}")

        if self.diff_timeout < 0:
            errors.append("Diff timeout cannot be negative")

        if self.max_text_length <= 0:
            errors.append("Max text length must be positive")

        if self.max_lcs_cells <= 0:
            errors.append("Max LCS cells must be positive")

        if self.log_format not in ('json', 'text'):
            errors.append(f"Invalid log_format: {self.log_format}")

        if self.debug and os.environ.get('TR_ENV') == 'production':
            errors.append("Debug mode cannot be enabled in production")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured JSON logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        self.logger.handlers.clear()
        self.logger.propagate = False

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        # Rotating file handler keeps the log directory bounded
        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            self.config.log_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _build_log_record(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Build a structured log record."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'correlation_id': self.get_correlation_id(),
            'message': message,
            **kwargs
        }

    def _render(self, level: str, message: str, **kwargs) -> str:
        if self.config.log_format == 'json':
            return json.dumps(self._build_log_record(level, message, **kwargs), ensure_ascii=False, default=str)
        return message

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(self._render('DEBUG', message, **kwargs), extra=kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._render('INFO', message, **kwargs), extra=kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._render('WARNING', message, **kwargs), extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self.logger.error(self._render('ERROR', message, **kwargs), exc_info=exc_info, extra=kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.info(f"{operation} completed", operation=operation, status='completed',
                      duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), exc_info=True, **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    _RESERVED = frozenset((
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'pathname', 'process', 'processName', 'relativeCreated',
        'stack_info', 'thread', 'threadName', 'exc_info', 'exc_text',
        'message', 'taskName'
    ))

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._RESERVED:
                log_data[key] = value

        return json.dumps(log_data, ensure_ascii=False, default=str)


_loggers: Dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()

def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance (one per name)."""
    with _loggers_lock:
        logger = _loggers.get(name)
        if logger is None:
            logger = StructuredLogger(name, get_config())
            _loggers[name] = logger
        return logger


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TashkeelReviewError(Exception):
    """Base exception for Tashkeel Review."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response dict."""
        return {
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message,
                'details': self.details
            }
        }


class NotFoundError(TashkeelReviewError):
    """A referenced unit, suggestion or change request does not exist."""
    def __init__(self, message: str, kind: Optional[str] = None,
                 identifier: Optional[str] = None, **kwargs):
        super().__init__(message, code=kwargs.pop('code', "NOT_FOUND"),
                         status_code=kwargs.pop('status_code', 404),
                         details={'kind': kind, 'id': identifier, **kwargs})
        self.kind = kind
        self.identifier = identifier


class AlreadyResolvedError(NotFoundError):
    """The referenced suggestion or change exists but is no longer pending."""
    def __init__(self, message: str, kind: Optional[str] = None,
                 identifier: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message, kind=kind, identifier=identifier,
                         code="ALREADY_RESOLVED", status_code=409, status=status)


class InvalidInputError(TashkeelReviewError):
    """Input validation error."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="INVALID_INPUT", status_code=400,
                         details={'field': field, **kwargs})


class ProcessingError(TashkeelReviewError):
    """Unexpected failure while processing a request."""
    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        super().__init__(message, code="PROCESSING_ERROR", status_code=500,
                         details={'stage': stage, **kwargs})
