"""Tests for the JSONL logging of loader activity."""

import json
import logging

import pytest
from hookloader.logging_setup import LOGGER_NAME
from hookloader.logging_setup import JsonlHandler
from hookloader.logging_setup import init_json_logging


@pytest.fixture
def restore_package_logger():
    package_logger = logging.getLogger(LOGGER_NAME)
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(level)


def read_records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_init_installs_single_handler(tmp_path, restore_package_logger):
    """Test that repeated initialization replaces the JSONL handler."""
    init_json_logging(tmp_path / "a.jsonl", "debug")
    handler = init_json_logging(tmp_path / "b.jsonl", "debug")

    package_logger = logging.getLogger(LOGGER_NAME)
    jsonl_handlers = [h for h in package_logger.handlers if isinstance(h, JsonlHandler)]
    assert jsonl_handlers == [handler]
    assert package_logger.level == logging.DEBUG
    assert not any(isinstance(h, JsonlHandler) for h in logging.getLogger().handlers)


def test_record_layout(tmp_path, restore_package_logger):
    """Test the fields written for a record with pipeline context."""
    path = tmp_path / "logs" / "loader.jsonl"
    init_json_logging(path, "INFO")

    logging.getLogger("hookloader.loader").info(
        "loaded module", extra={"stage": "fetch", "load_name": "a", "address": "a.py"}
    )

    record = read_records(path)[-1]
    assert record["lvl"] == "INFO"
    assert record["logger"] == "hookloader.loader"
    assert record["message"] == "loaded module"
    assert record["stage"] == "fetch"
    assert record["load_name"] == "a"
    assert record["address"] == "a.py"
    assert "error" not in record


@pytest.mark.asyncio
async def test_loader_records_carry_stage_context(tmp_path, restore_package_logger, loader, fetcher):
    """Test that every pipeline stage logs with its stage and module name."""
    path = tmp_path / "loader.jsonl"
    init_json_logging(path, "DEBUG")
    fetcher.add("a.py", "module.exports = 1")

    await loader.load("a")

    records = [r for r in read_records(path) if r["logger"] == "hookloader.loader"]
    stages = {r["stage"] for r in records if r["load_name"] == "a"}
    assert {"load", "locate", "fetch", "translate", "instantiate", "execute"} <= stages
    fetch_record = next(r for r in records if r["stage"] == "fetch")
    assert fetch_record["address"] == "a.py"


@pytest.mark.asyncio
async def test_execution_failure_is_logged(tmp_path, restore_package_logger, loader, fetcher):
    """Test that module code errors are logged at warning level."""
    path = tmp_path / "loader.jsonl"
    init_json_logging(path, "WARNING")
    fetcher.add("boom.py", "raise ValueError('boom')")

    with pytest.raises(Exception):
        await loader.load("boom")

    records = read_records(path)
    assert [r["stage"] for r in records] == ["execute"]
    assert records[0]["lvl"] == "WARNING"
    assert records[0]["load_name"] == "boom"
