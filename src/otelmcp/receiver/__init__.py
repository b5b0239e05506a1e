# src/otelmcp/receiver/__init__.py
"""OTLP/HTTP trace receiver and the OTLP/JSON decoder."""

from otelmcp.receiver.otlp import decode_export_request

__all__ = ["decode_export_request"]
