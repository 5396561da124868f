from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from imagined.gen.config import API_KEY_ENV, OUTPUT_DIR_ENV


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    # load_settings may populate these from .env files written by a test
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    monkeypatch.delenv(OUTPUT_DIR_ENV, raising=False)
    yield
    os.environ.pop(API_KEY_ENV, None)
    os.environ.pop(OUTPUT_DIR_ENV, None)
