from __future__ import annotations

import pytest

from support import FakeClock, Wallet


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def wallet() -> Wallet:
    return Wallet(bytes.fromhex("4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"))


@pytest.fixture()
def other_wallet() -> Wallet:
    return Wallet(bytes.fromhex("0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"))
