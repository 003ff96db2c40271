"""Smart home telemetry service for Tuya cloud devices."""
