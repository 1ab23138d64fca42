"""Telemetry helpers."""
