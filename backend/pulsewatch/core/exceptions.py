"""Custom exceptions for the Pulsewatch backend."""


class AlertConfigError(ValueError):
    """Raised when an alert rule is malformed (bad operator, non-numeric threshold, ...)."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid alert configuration for {field}: {reason}")


class StatePersistenceError(Exception):
    """Raised when updated alert runtime state could not be committed."""

    def __init__(self, alert_id, reason: str = "unknown"):
        self.alert_id = alert_id
        self.reason = reason
        super().__init__(f"Failed to persist runtime state for alert {alert_id}: {reason}")
