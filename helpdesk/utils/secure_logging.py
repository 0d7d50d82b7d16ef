"""
Secure Logging - Logging with automatic sensitive data masking

Ticket and user records pass through log lines (emails, bearer tokens,
connection strings), so every handler installed here masks them first.

Usage:
    from helpdesk.utils.secure_logging import configure_secure_logging

    configure_secure_logging(level=logging.INFO, format_type="json")
"""

import re
import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from logging import LogRecord, Filter, Formatter


# Each tuple: (compiled regex pattern, replacement string or callable)
SENSITIVE_PATTERNS: List[Tuple[re.Pattern, Any]] = [
    # Bearer/Auth tokens
    (re.compile(r'(Bearer\s+)[a-zA-Z0-9_.-]+', re.IGNORECASE), r'\1[TOKEN_REDACTED]'),
    (re.compile(r'(Authorization:\s*)[^\s]+', re.IGNORECASE), r'\1[REDACTED]'),

    # JWT tokens (3 base64 parts separated by dots)
    (re.compile(r'eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+'), '[JWT_REDACTED]'),

    # bcrypt hashes
    (re.compile(r'\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}'), '[HASH_REDACTED]'),

    # Passwords
    (re.compile(r'(password|passwd|pwd|secret|token)["\s:=]+["\']?([^\s"\']{4,})["\']?', re.IGNORECASE), r'\1=[REDACTED]'),

    # MongoDB URIs with credentials
    (re.compile(r'mongodb(\+srv)?://([^:]+):([^@]+)@'), r'mongodb\1://[USER]:[PASS]@'),

    # SMTP credentials in URLs
    (re.compile(r'smtp://([^:]+):([^@]+)@'), r'smtp://[USER]:[PASS]@'),

    # Email addresses
    (re.compile(r'([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+)\.([a-zA-Z]{2,})'), lambda m: f"{m.group(1)[:1]}***@***.{m.group(3)}"),

    # Generic secret patterns
    (re.compile(r'(secret[_-]?key|private[_-]?key|access[_-]?token)["\s:=]+["\']?([^\s"\']{8,})["\']?', re.IGNORECASE), r'\1=[REDACTED]'),
]

# LogRecord attributes that are never user data
_RECORD_ATTRS = frozenset((
    'msg', 'args', 'name', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
))


class SensitiveDataFilter(Filter):
    """
    Logging filter that masks sensitive data in log messages.

    Masks tokens, password hashes, credentials in URIs and email addresses,
    in the message, its arguments and any ``extra`` fields.
    """

    def __init__(self, name: str = '', additional_patterns: Optional[List[Tuple[re.Pattern, Any]]] = None):
        super().__init__(name)
        self.patterns = SENSITIVE_PATTERNS.copy()
        if additional_patterns:
            self.patterns.extend(additional_patterns)

    def filter(self, record: LogRecord) -> bool:
        """Mask the record in place. Always lets it through."""
        if record.msg:
            record.msg = self._mask_sensitive(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_sensitive(str(v)) for k, v in record.args.items()}
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._mask_sensitive(str(arg)) for arg in record.args)

        for key, value in list(record.__dict__.items()):
            if key in _RECORD_ATTRS:
                continue
            if isinstance(value, str):
                setattr(record, key, self._mask_sensitive(value))
            elif isinstance(value, dict):
                setattr(record, key, self._mask_dict(value))

        return True

    def _mask_sensitive(self, text: str) -> str:
        if not text:
            return text

        result = text
        for pattern, replacement in self.patterns:
            result = pattern.sub(replacement, result)
        return result

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively mask sensitive data in a dictionary."""
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._mask_sensitive(value)
            elif isinstance(value, dict):
                result[key] = self._mask_dict(value)
            elif isinstance(value, (list, tuple)):
                result[key] = [
                    self._mask_sensitive(v) if isinstance(v, str) else v
                    for v in value
                ]
            else:
                result[key] = value
        return result


class SecureFormatter(Formatter):
    """Text formatter with trace ID column and masking"""

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        include_trace_id: bool = True,
    ):
        if fmt is None:
            if include_trace_id:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - [%(trace_id)s] - %(message)s'
            else:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        super().__init__(fmt, datefmt)
        self.include_trace_id = include_trace_id
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        if self.include_trace_id and not hasattr(record, 'trace_id'):
            record.trace_id = '-'

        self._sensitive_filter.filter(record)
        return super().format(record)


class JSONSecureFormatter(Formatter):
    """
    JSON log formatter with sensitive data masking.

    Extra fields passed to the logger (``effects``, ``trace_id``, ``context``)
    land as top-level keys.
    """

    def __init__(self):
        super().__init__()
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        self._sensitive_filter.filter(record)

        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'trace_id'):
            log_data['trace_id'] = record.trace_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in ('message', 'trace_id') or key.startswith('_'):
                continue
            log_data[key] = value

        return json.dumps(log_data, default=str)


def configure_secure_logging(
    level: int = logging.INFO,
    format_type: str = 'text',  # 'text' or 'json'
    include_trace_id: bool = True,
    additional_patterns: Optional[List[Tuple[re.Pattern, Any]]] = None,
) -> None:
    """
    Configure secure logging globally.

    Replaces the root logger's handlers with one masked console handler.

    Args:
        level: Logging level
        format_type: 'text' for human-readable, 'json' for structured logs
        include_trace_id: Include trace_id in log output
        additional_patterns: Additional regex patterns to mask
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.addFilter(SensitiveDataFilter(additional_patterns=additional_patterns))

    if format_type == 'json':
        formatter = JSONSecureFormatter()
    else:
        formatter = SecureFormatter(include_trace_id=include_trace_id)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


__all__ = [
    'SensitiveDataFilter',
    'SecureFormatter',
    'JSONSecureFormatter',
    'SENSITIVE_PATTERNS',
    'configure_secure_logging',
]
