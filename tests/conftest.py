"""
Pytest configuration and fixtures for the SupplyChain ledger tests

Ledger coroutines are driven through the `run` fixture, one event loop per test.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from ledger import BatchLedger
from services.roles import RoleRegistry


# =======================
# ADDRESSES
# =======================

@pytest.fixture
def addr() -> SimpleNamespace:
    """Digit-only addresses are already in checksum form"""
    return SimpleNamespace(
        manufacturer="0x1111111111111111111111111111111111111111",
        distributor="0x2222222222222222222222222222222222222222",
        retailer="0x3333333333333333333333333333333333333333",
        outsider="0x4444444444444444444444444444444444444444",
        zero="0x0000000000000000000000000000000000000000",
    )


# =======================
# LEDGER FIXTURES
# =======================

class StepClock:
    """Deterministic clock advancing one second per reading"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def run():
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.close()


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def roles(addr) -> RoleRegistry:
    return RoleRegistry.initialize(addr.manufacturer, addr.distributor, addr.retailer)


@pytest.fixture
def ledger(roles, clock) -> BatchLedger:
    return BatchLedger(roles, clock=clock)


@pytest.fixture
def b1(ledger, run, addr) -> BatchLedger:
    """Ledger holding batch B1: 100 units for u1, labelled L1, at Plant A"""
    run(ledger.create_batch(addr.manufacturer, "B1", 100, "u1", "L1", "Plant A"))
    return ledger
