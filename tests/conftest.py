"""Shared fixtures for the AutoFM test suite."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator
from zoneinfo import ZoneInfo

import pytest

from autofm.config import AutoFMConfig

FIXED_NOW = datetime(2024, 5, 6, 7, 8, 9, tzinfo=ZoneInfo("Asia/Shanghai"))
FIXED_STAMP = "2024/05/06 07:08:09"


@pytest.fixture(autouse=True)
def _reset_autofm_logging() -> Iterator[None]:
    """Drop handlers installed by CLI invocations between tests."""
    yield
    logger = logging.getLogger("autofm")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _clear_autofm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("AUTOFM__"):
            monkeypatch.delenv(key)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def config() -> AutoFMConfig:
    return AutoFMConfig.model_validate({"watch": {"batch_delay_seconds": 0}})


@pytest.fixture
def blog_root(tmp_path: Path) -> Path:
    root = tmp_path / "blog"
    root.mkdir()
    return root


def write_post(root: Path, relative: str, text: str = "# Body\n") -> Path:
    """Create a markdown file under ``root`` and return its path."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
