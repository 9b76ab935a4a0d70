from pulsewatch.models.alert import AlertConfig
from pulsewatch.models.api_key import ApiKey, ApiKeyRole
from pulsewatch.models.destination import NotificationDestination
from pulsewatch.models.metric import MetricSample
from pulsewatch.models.notification_audit import NotificationAuditRecord

__all__ = [
    "AlertConfig",
    "ApiKey",
    "ApiKeyRole",
    "MetricSample",
    "NotificationAuditRecord",
    "NotificationDestination",
]
