"""Tests for tracing helpers and logging setup."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

from framewalk import telemetry
from framewalk.logging_setup import configure_logging


class TestSpan:
    """Engine spans work with or without a configured provider."""

    def test_attributes_are_namespaced(self):
        current = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = current

        with patch.object(telemetry, "_tracer", tracer), telemetry.span("framewalk.click", ref="f1a1", frame="iframe#a"):
            pass

        tracer.start_as_current_span.assert_called_once_with("framewalk.click")
        current.set_attribute.assert_any_call("framewalk.ref", "f1a1")
        current.set_attribute.assert_any_call("framewalk.frame", "iframe#a")

    def test_noop_tracer_by_default(self):
        with telemetry.span("framewalk.snapshot", frame="") as current:
            assert current is not None


class TestInitTelemetry:
    """Tracing stays off unless enabled with an endpoint."""

    def test_disabled(self):
        with patch.object(telemetry, "OTEL_ENABLED", False):
            assert telemetry.init_telemetry() is False

    def test_enabled_without_endpoint(self):
        with patch.object(telemetry, "OTEL_ENABLED", True), patch.object(telemetry, "OTEL_EXPORTER_OTLP_ENDPOINT", ""):
            assert telemetry.init_telemetry() is False


class TestConfigureLogging:
    """A single stderr handler on the package logger."""

    def test_idempotent(self):
        configure_logging("debug")
        configure_logging("INFO")

        logger = logging.getLogger("framewalk")
        handlers = [h for h in logger.handlers if getattr(h, "_framewalk", False)]
        assert len(handlers) == 1
        assert logger.level == logging.INFO
        assert logger.propagate is False

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")
        assert logging.getLogger("framewalk").level == logging.INFO
