from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo_serializer import logging as rs_logging
from repo_serializer.logging import LOGGER_NAME, logger, set_verbosity, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


def _file_handlers() -> list[logging.FileHandler]:
    return [h for h in logging.getLogger(LOGGER_NAME).handlers if isinstance(h, logging.FileHandler)]


@pytest.fixture
def _detach_log_file() -> Iterator[None]:
    yield
    for handler in _file_handlers():
        logging.getLogger(LOGGER_NAME).removeHandler(handler)
        handler.close()
    rs_logging._FILE_HANDLER = None  # noqa: SLF001


@pytest.mark.unit
@pytest.mark.parametrize(
    ("options", "level"),
    [
        ({}, logging.INFO),
        ({"silent": True}, logging.WARNING),
        ({"verbose": True}, logging.DEBUG),
    ],
)
def test_set_verbosity_sets_package_level(options: dict[str, bool], level: int) -> None:
    assert set_verbosity(**options) == level
    assert logging.getLogger(LOGGER_NAME).level == level


@pytest.mark.unit
@pytest.mark.usefixtures("_detach_log_file")
def test_setup_logging_writes_events_to_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"

    setup_logging(log_file)
    logger.info("Repository structure written to: %s", "x.txt")

    assert "Repository structure written to: x.txt" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
@pytest.mark.usefixtures("_detach_log_file")
def test_setup_logging_keeps_a_single_log_file_open(tmp_path: Path) -> None:
    setup_logging(tmp_path / "first.log")
    (first,) = _file_handlers()
    setup_logging(tmp_path / "first.log")

    assert _file_handlers() == [first]

    setup_logging(tmp_path / "second.log")

    (current,) = _file_handlers()
    assert Path(current.baseFilename).name == "second.log"
    assert first.stream is None
