from __future__ import annotations

import asyncio
from typing import List

import pytest


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    """Record asyncio.sleep delays instead of sleeping."""
    recorded: List[float] = []

    async def _fake_sleep(delay: float, result: object = None) -> object:
        recorded.append(delay)
        return result

    monkeypatch.setattr(asyncio, "sleep", _fake_sleep)
    return recorded
