"""Secure logging configuration for the property minutes generator."""

import logging
import re
import sys
from pathlib import Path
from typing import Any, Optional

import structlog


class LogSanitizer:
    """Sanitize credentials and personal data from log messages."""

    SENSITIVE_PATTERNS = [
        (r'refresh_token["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', "refresh_token=[TOKEN_REDACTED]"),
        (r'access_token["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', "access_token=[TOKEN_REDACTED]"),
        (r'client_secret["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', "client_secret=[SECRET_REDACTED]"),
        (r'api_key["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', "api_key=[KEY_REDACTED]"),
        (r"\bcode=([^&\s]+)", "code=[CODE_REDACTED]"),
        (r"bearer\s+([a-zA-Z0-9._-]+)", "bearer [TOKEN_REDACTED]"),
        # Google OAuth token shapes
        (r"ya29\.[0-9A-Za-z._-]+", "[ACCESS_TOKEN_REDACTED]"),
        (r"1//[0-9A-Za-z._-]+", "[REFRESH_TOKEN_REDACTED]"),
        (r"GOCSPX-[0-9A-Za-z_-]+", "[CLIENT_SECRET_REDACTED]"),
        (r"AIza[0-9A-Za-z_-]{35}", "[GOOGLE_API_KEY_REDACTED]"),
        # Email addresses (partially redacted)
        (r"([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", r"\1***@\2"),
    ]

    @classmethod
    def sanitize_message(cls, message: str) -> str:
        """Sanitize log message by removing sensitive data."""
        if not message:
            return message

        sanitized = message
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized

    @classmethod
    def sanitize_value(cls, value: Any) -> Any:
        if isinstance(value, str):
            return cls.sanitize_message(value)
        elif isinstance(value, dict):
            return {k: cls.sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            return [cls.sanitize_value(v) for v in value]
        else:
            return value


class SecureFormatter(logging.Formatter):
    """Formatter that redacts credentials before records are written."""

    def format(self, record: logging.LogRecord) -> str:
        record.msg = LogSanitizer.sanitize_message(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = LogSanitizer.sanitize_value(record.args)
            else:
                record.args = tuple(LogSanitizer.sanitize_value(arg) for arg in record.args)

        return super().format(record)


def _sanitize_event(_, __, event_dict):
    return {k: LogSanitizer.sanitize_value(v) for k, v in event_dict.items()}


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    sanitize: bool = True,
) -> None:
    """Configure root logging and structlog for the application."""
    logging.getLogger().handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if sanitize:
        processors.append(_sanitize_event)
    processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    formatter_class = SecureFormatter if sanitize else logging.Formatter

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            formatter_class("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logging.getLogger().addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            formatter_class(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            )
        )
        logging.getLogger().addHandler(file_handler)

    logging.getLogger().setLevel(log_level)

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


class SecurityLogger:
    """Structured logger for authentication and API audit events."""

    def __init__(self, name: str = "security") -> None:
        self.logger = structlog.get_logger(name)

    def log_security_event(
        self, event_type: str, severity: str = "INFO", **kwargs: Any
    ) -> None:
        sanitized_kwargs = {k: LogSanitizer.sanitize_value(v) for k, v in kwargs.items()}

        log_method = getattr(self.logger, severity.lower(), self.logger.info)
        log_method("security_event", event_type=event_type, **sanitized_kwargs)

    def log_authentication_attempt(
        self, service: str, success: bool = False, **kwargs: Any
    ) -> None:
        self.log_security_event(
            "authentication_attempt",
            severity="INFO" if success else "WARNING",
            service=service,
            success=success,
            **kwargs,
        )

    def log_api_request(
        self, service: str, endpoint: str, method: str = "GET", **kwargs: Any
    ) -> None:
        self.log_security_event(
            "api_request", service=service, endpoint=endpoint, method=method, **kwargs
        )

    def log_configuration_change(
        self, component: str, change_type: str, **kwargs: Any
    ) -> None:
        self.log_security_event(
            "configuration_change", component=component, change_type=change_type, **kwargs
        )


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance."""
    return logging.getLogger(name)


def get_security_logger() -> SecurityLogger:
    """Get security logger instance."""
    return SecurityLogger()
