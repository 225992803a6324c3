"""Unit tests for the structlog configuration helpers."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


def test_json_output_goes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging("INFO", json_output=True)

    logger = structlog.get_logger(logger_name="tests.logging")
    logger.info("chunking_complete", document_id="doc-1", num_chunks=3)

    captured = capsys.readouterr()
    assert captured.out == ""
    event = json.loads(captured.err.strip().splitlines()[-1])
    assert event["event"] == "chunking_complete"
    assert event["num_chunks"] == 3
    assert event["level"] == "info"


def test_level_filters_events(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging("WARNING", json_output=True)

    logger = structlog.get_logger(logger_name="tests.logging")
    logger.info("dropped")
    logger.warning("kept")

    err = capsys.readouterr().err
    assert "dropped" not in err
    assert "kept" in err


def test_noisy_libraries_capped_at_warning() -> None:
    configure_logging("INFO")
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging("DEBUG")
    assert logging.getLogger("httpx").level == logging.DEBUG


def test_unknown_level_raises() -> None:
    with pytest.raises(ConfigurationError):
        configure_logging("LOUD")
