"""
Logging configuration for FedMCP.

Provides structured JSON logging for signing and verification events.
The library never installs handlers on import; applications call
configure_logging() (or config.configure_from_env()).
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

# Context variable for correlating log lines of one logical operation
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class SecurityLogger:
    """
    Logger for security-relevant events.

    Signing, verification outcomes and trust registry changes each get a
    stable event_type so they can be filtered downstream.
    """

    def __init__(self, name: str = "fedmcp.security"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, message: str, fields: Dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            **fields,
            "event_type": event_type,
        }
        correlation_id = correlation_id_var.get()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {message}",
            (),
            None,
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def artifact_signed(self, kid: str, artifact_id: str, artifact_hash: str, version: int) -> None:
        """Log a successful signing operation."""
        self._log(
            logging.INFO,
            "ARTIFACT_SIGNED",
            f"Artifact {artifact_id} v{version} signed with {kid}",
            {"kid": kid, "artifact_id": artifact_id, "artifact_hash": artifact_hash, "version": version},
        )

    def signing_refused(self, artifact_id: str, reason: str) -> None:
        """Log a signing request rejected before any cryptographic work."""
        self._log(
            logging.WARNING,
            "SIGNING_REFUSED",
            f"Signing refused: {reason}",
            {"artifact_id": artifact_id, "reason": reason},
        )

    def verification_succeeded(self, kid: str, artifact_id: str) -> None:
        """Log a successful verification."""
        self._log(
            logging.INFO,
            "VERIFICATION_SUCCEEDED",
            f"Envelope for {artifact_id} verified with {kid}",
            {"kid": kid, "artifact_id": artifact_id},
        )

    def verification_failed(
        self,
        reason: str,
        artifact_id: Optional[str] = None,
        kid: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        """Log a verification failure."""
        self._log(
            logging.WARNING,
            "VERIFICATION_FAILED",
            f"Verification failed: {reason}",
            {"reason": reason, "artifact_id": artifact_id, "kid": kid, "detail": detail},
        )

    def key_registered(self, kid: str, replaced: bool) -> None:
        """Log a trust registry change."""
        self._log(
            logging.WARNING if replaced else logging.INFO,
            "KEY_REGISTERED",
            f"Public key {kid} {'replaced' if replaced else 'registered'}",
            {"kid": kid, "replaced": replaced},
        )

    def security_event(self, event: str, severity: str = "medium", **details) -> None:
        """
        Log a security-relevant event.

        Arbitrary details become extra fields. A "message" detail is kept
        under "detail" so it cannot replace the log line's own message.
        """
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL,
        }.get(severity, logging.WARNING)

        fields = dict(details)
        if "message" in fields:
            fields.setdefault("detail", fields.pop("message"))
        fields["security_event"] = event
        fields["severity"] = severity

        self._log(level, "SECURITY_EVENT", f"Security event: {event}", fields)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set the correlation ID for the current context.

    Returns:
        The correlation ID that was set (generated when None)
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    """Get the current correlation ID."""
    return correlation_id_var.get()


# Global security logger instance
security_log = SecurityLogger()
