"""Tests for package logger configuration."""

import io
import logging

import pytest

import backoffice.logging_setup as logging_setup


@pytest.fixture
def fresh_logger(monkeypatch):
    logger = logging.getLogger("backoffice")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    logger.handlers = []
    yield logger
    logger.handlers, logger.level, logger.propagate = saved


def test_configures_once(fresh_logger):
    stream = io.StringIO()

    logging_setup.configure_logging("debug", stream=stream)
    logging_setup.configure_logging("error", stream=io.StringIO())

    assert len(fresh_logger.handlers) == 1
    assert fresh_logger.level == logging.DEBUG
    logging.getLogger("backoffice.services").debug("page fetched")
    assert "backoffice.services DEBUG page fetched" in stream.getvalue()


def test_unknown_level_falls_back_to_info(fresh_logger):
    logging_setup.configure_logging("chatty", stream=io.StringIO())
    assert fresh_logger.level == logging.INFO
