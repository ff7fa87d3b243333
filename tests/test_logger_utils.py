# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import io
import json
import logging

import pytest

from healthcare_mcp.utils.logger import HealthcareMCPHandler, StructuredJSONFormatter, get_logger, setup_logger


def _capture_json(serializer=None) -> list[str]:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredJSONFormatter(serializer, datefmt=None))

    logger = logging.getLogger("healthcare_mcp.test.logger")
    logger.handlers = [handler]
    logger.setLevel(logging.INFO)
    logger.propagate = False

    logger.info("session closed", extra={"context": {"usage": {"pubmed_search": 2}}, "session_id": "abc"})
    handler.flush()
    logger.handlers = []
    logger.propagate = True

    return stream.getvalue().strip().splitlines()


def test_json_formatter_merges_context_and_extras() -> None:
    lines = _capture_json()

    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["logger"] == "healthcare_mcp.test.logger"
    assert payload["level"] == "info"
    assert payload["message"] == "session closed"
    assert payload["context"] == {"usage": {"pubmed_search": 2}, "session_id": "abc"}


def test_json_formatter_uses_custom_serializer() -> None:
    lines = _capture_json(lambda payload: json.dumps({"wrapped": payload["message"]}))
    assert json.loads(lines[0]) == {"wrapped": "session closed"}


def test_setup_logger_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEALTHCARE_MCP_LOG_JSON", "1")
    monkeypatch.setenv("HEALTHCARE_MCP_LOG_LEVEL", "DEBUG")
    setup_logger(force=True)

    root = logging.getLogger()
    installed = [h for h in root.handlers if isinstance(h, HealthcareMCPHandler)]
    assert len(installed) == 1
    assert isinstance(installed[0].formatter, StructuredJSONFormatter)
    assert root.level == logging.DEBUG

    monkeypatch.delenv("HEALTHCARE_MCP_LOG_JSON")
    monkeypatch.delenv("HEALTHCARE_MCP_LOG_LEVEL")
    setup_logger(level="INFO", force=True)


def test_setup_logger_is_idempotent_without_force() -> None:
    setup_logger(use_json=False, force=True)
    setup_logger(use_json=True)

    installed = [h for h in logging.getLogger().handlers if isinstance(h, HealthcareMCPHandler)]
    assert len(installed) == 1
    assert not isinstance(installed[0].formatter, StructuredJSONFormatter)


def test_get_logger_defaults_to_package_name() -> None:
    assert get_logger().name == "healthcare_mcp"
    assert get_logger("healthcare_mcp.cache").name == "healthcare_mcp.cache"
