"""
Notification payload formatting.

Supports multiple destination formats:
- generic: the notification request as structured JSON, unmodified
- discord: Discord embed format
- slack: Slack block format

Formatting is pure: the same payload and format always produce the same
message body, and no field is derived from the current clock.
"""

from typing import Any

FOOTER_TEXT = "Pulsewatch Alerts"

# Discord colors (decimal format) and Slack attachment colors per transition
TRANSITION_STYLES = {
    "entered": {"color": 0xE01E5A, "hex": "#E01E5A", "emoji": "🚨", "label": "ALERT TRIGGERED"},
    "active": {"color": 0xFF8C00, "hex": "#FF8C00", "emoji": "⚠️", "label": "STILL ALERTING"},
    "recovered": {"color": 0x2EB67D, "hex": "#2EB67D", "emoji": "✅", "label": "RECOVERED"},
}


def _style_for(payload: dict[str, Any]) -> dict[str, Any]:
    return TRANSITION_STYLES.get(payload.get("transition_kind"), TRANSITION_STYLES["entered"])


def _counter_field(payload: dict[str, Any]) -> tuple[str, str]:
    """Pick the counter that explains this transition."""
    alert = payload.get("alert", {})
    if payload.get("transition_kind") == "recovered":
        return (
            "Consecutive Recoveries",
            f"{payload.get('consecutive_recoveries', 0)} / {alert.get('exit_threshold', 1)}",
        )
    return (
        "Consecutive Breaches",
        f"{payload.get('consecutive_breaches', 0)} / {alert.get('enter_threshold', 1)}",
    )


def _condition_text(payload: dict[str, Any]) -> str:
    alert = payload.get("alert", {})
    return f"{alert.get('condition', '?')} {alert.get('threshold', '?')}"


def _title(payload: dict[str, Any]) -> str:
    style = _style_for(payload)
    alert = payload.get("alert", {})
    subject = alert.get("name") or alert.get("metric", "unknown metric")
    return f"{style['emoji']} {style['label']}: {subject}"


def _description(payload: dict[str, Any]) -> str:
    alert = payload.get("alert", {})
    metric = alert.get("metric", "unknown")
    if payload.get("reason") == "missing_data":
        return f"No data received for `{metric}` within the expected interval."
    return f"`{metric}` = {payload.get('value')} (condition: {_condition_text(payload)})"


def format_generic_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Generic destinations receive the notification request as-is."""
    return payload


def format_discord_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Format payload for Discord webhook."""
    style = _style_for(payload)
    counter_name, counter_value = _counter_field(payload)

    fields = [
        {"name": "Metric", "value": f"`{payload.get('alert', {}).get('metric', 'N/A')}`", "inline": True},
        {"name": "Condition", "value": _condition_text(payload), "inline": True},
        {"name": "Value", "value": str(payload.get("value")), "inline": True},
        {"name": "Tenant", "value": f"`{payload.get('tenant_id', 'N/A')}`", "inline": True},
        {"name": counter_name, "value": counter_value, "inline": True},
    ]

    return {
        "embeds": [{
            "title": _title(payload),
            "description": _description(payload),
            "color": style["color"],
            "fields": fields,
            "timestamp": payload.get("timestamp"),
            "footer": {"text": FOOTER_TEXT},
        }]
    }


def format_slack_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Format payload for Slack webhook."""
    style = _style_for(payload)
    counter_name, counter_value = _counter_field(payload)

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": _title(payload), "emoji": True},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": _description(payload)},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Metric:*\n`{payload.get('alert', {}).get('metric', 'N/A')}`"},
                {"type": "mrkdwn", "text": f"*Condition:*\n{_condition_text(payload)}"},
                {"type": "mrkdwn", "text": f"*Value:*\n{payload.get('value')}"},
                {"type": "mrkdwn", "text": f"*Tenant:*\n`{payload.get('tenant_id', 'N/A')}`"},
                {"type": "mrkdwn", "text": f"*{counter_name}:*\n{counter_value}"},
            ],
        },
        {
            "type": "context",
            "elements": [
                {"type": "mrkdwn", "text": f"{FOOTER_TEXT} • {payload.get('timestamp', 'Unknown time')}"}
            ],
        },
    ]

    return {
        "text": _title(payload),
        "attachments": [{"color": style["hex"], "blocks": blocks}],
    }


FORMATTERS = {
    "generic": format_generic_payload,
    "discord": format_discord_payload,
    "slack": format_slack_payload,
}


def format_message(payload: dict[str, Any], format_tag: str) -> dict[str, Any]:
    """Format a notification payload for a destination; unknown tags fall back to generic."""
    formatter = FORMATTERS.get(format_tag, format_generic_payload)
    return formatter(payload)
