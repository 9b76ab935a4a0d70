"""Pulsewatch: metric ingestion with hysteresis alerting."""
