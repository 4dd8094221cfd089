from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from tests._fixtures.go_repo import GoRepoBuilder


@pytest.fixture
def go_repo(tmp_path: Path) -> GoRepoBuilder:
    """Provide a Go module builder rooted at the pytest tmp_path."""
    return GoRepoBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _reset_codescan_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog sees codescan records."""
    yield
    logger = logging.getLogger("codescan")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
