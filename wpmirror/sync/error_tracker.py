"""
Error Taxonomy and Tracking for the Sync Module.

Failures are classified so the orchestrator can decide what to retry, what to
treat as a normal negative result, and what aborts an endpoint's run.

Key Features:
- Custom Exception Classes: transient upstream failures (retried),
  non-transient fetch failures, destination/notification service failures
  and per-endpoint failures.
- ErrorTracker: aggregates everything that went wrong during a run so that a
  single summary can be logged or reported.
- Severity Levels: WARNING, ERROR, CRITICAL.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any


class ErrorSeverity(Enum):
    """
    Defines the severity of an error.
    """
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class SyncError:
    """
    A structured object representing a single error that occurred during a run.
    """
    message: str
    source_id: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Dict[str, Any] = field(default_factory=dict)
    recovery_suggestion: Optional[str] = None

    def to_dict(self):
        return {
            "message": self.message,
            "source_id": self.source_id,
            "severity": self.severity.value,
            "details": self.details,
            "recovery_suggestion": self.recovery_suggestion
        }


class SyncException(Exception):
    """Base class for all custom sync exceptions."""
    def __init__(self, message: str, source_id: Optional[str] = None, recovery_suggestion: Optional[str] = None):
        self.message = message
        self.source_id = source_id
        self.recovery_suggestion = recovery_suggestion
        super().__init__(self.message)


class ConfigurationError(SyncException):
    """Indicates an invalid endpoints file or missing credentials."""
    pass


class SourceFetchError(SyncException):
    """Indicates a non-transient failure to fetch from WordPress."""
    def __init__(self, message: str, source_id: Optional[str] = None, recovery_suggestion: Optional[str] = None, status: Optional[int] = None):
        self.status = status
        super().__init__(message, source_id=source_id, recovery_suggestion=recovery_suggestion)


class TransientUpstreamError(SourceFetchError):
    """A 5xx from WordPress; eligible for retry."""
    pass


class ExternalServiceError(SyncException):
    """Indicates a failure with GitHub or Slack."""
    def __init__(self, message: str, source_id: Optional[str] = None, recovery_suggestion: Optional[str] = None, status: Optional[int] = None):
        self.status = status
        super().__init__(message, source_id=source_id, recovery_suggestion=recovery_suggestion)


class EndpointSyncError(SyncException):
    """One or more content types of an endpoint failed to publish."""
    def __init__(self, message: str, source_id: Optional[str] = None, failures: Optional[Dict[str, str]] = None):
        self.failures = failures or {}
        super().__init__(message, source_id=source_id)


class ErrorTracker:
    """
    A centralized tracker for aggregating errors during a sync run.
    """
    def __init__(self):
        self.errors: List[SyncError] = []

    def report(self, message: str, source_id: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.ERROR, details: Optional[Dict[str, Any]] = None, recovery_suggestion: Optional[str] = None):
        """
        Report a new error.
        """
        error = SyncError(
            message=message,
            source_id=source_id,
            severity=severity,
            details=details or {},
            recovery_suggestion=recovery_suggestion
        )
        self.errors.append(error)

    def report_exception(self, exc: BaseException, source_id: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        """
        Report an error from an exception, keeping sync exception context.
        """
        if isinstance(exc, SyncException):
            self.report(
                message=exc.message,
                source_id=source_id or exc.source_id,
                severity=severity,
                details={"type": type(exc).__name__},
                recovery_suggestion=exc.recovery_suggestion
            )
        else:
            self.report(
                message=str(exc),
                source_id=source_id,
                severity=severity,
                details={"type": type(exc).__name__}
            )

    def get_errors(self, min_severity: ErrorSeverity = ErrorSeverity.WARNING) -> List[SyncError]:
        """
        Get all errors at or above a certain severity level.
        """
        severity_map = {
            ErrorSeverity.WARNING: 1,
            ErrorSeverity.ERROR: 2,
            ErrorSeverity.CRITICAL: 3
        }
        min_level = severity_map.get(min_severity, 1)
        return [e for e in self.errors if severity_map.get(e.severity, 1) >= min_level]

    def has_critical_errors(self) -> bool:
        """
        Check if any critical errors have been reported.
        """
        return any(e.severity == ErrorSeverity.CRITICAL for e in self.errors)

    def generate_report(self) -> Dict[str, Any]:
        """
        Generate a summary report of all errors.
        """
        return {
            "total_errors": len(self.errors),
            "critical_count": len(self.get_errors(ErrorSeverity.CRITICAL)),
            "error_count": len(self.get_errors(ErrorSeverity.ERROR)) - len(self.get_errors(ErrorSeverity.CRITICAL)),
            "warning_count": len(self.get_errors(ErrorSeverity.WARNING)) - len(self.get_errors(ErrorSeverity.ERROR)),
            "errors": [e.to_dict() for e in self.errors]
        }
