from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from orderdesk.core.logging import configure_logging, get_logger


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        yield root
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_file_only_logging_writes_text_and_json(root_logger, tmp_path: Path) -> None:  # noqa: ANN001
    configure_logging(tmp_path, "corr-1", console=False)

    assert len(root_logger.handlers) == 2
    assert all(isinstance(handler, logging.FileHandler) for handler in root_logger.handlers)

    get_logger("orderdesk.test", "corr-1", "staff-1").info("Order %s shipped", "abc")
    logging.getLogger("orderdesk.test").warning("No operator attached")
    for handler in root_logger.handlers:
        handler.flush()

    [json_path] = tmp_path.glob("orderdesk-*.jsonl")
    records = [json.loads(line) for line in json_path.read_text(encoding="utf-8").splitlines()]
    assert records[0]["message"] == "Order abc shipped"
    assert records[0]["correlation_id"] == "corr-1"
    assert records[0]["operator_id"] == "staff-1"
    assert records[1]["operator_id"] == "-"

    [text_path] = tmp_path.glob("orderdesk-*.log")
    assert "[corr-1] [staff-1] orderdesk.test: Order abc shipped" in text_path.read_text(encoding="utf-8")


def test_console_handler_is_added_by_default(root_logger, tmp_path: Path) -> None:  # noqa: ANN001
    configure_logging(tmp_path, "corr-2")

    console = [handler for handler in root_logger.handlers if not isinstance(handler, logging.FileHandler)]
    assert len(console) == 1
    assert isinstance(console[0], logging.StreamHandler)
