from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from kidsavings.ops import StructuredLogger
from kidsavings.service import KidSavings
from kidsavings.storage import KeyValueStore

TZ = ZoneInfo("America/New_York")


class FakeClock:
    """Manually advanced ``now()`` provider."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, moment: datetime) -> datetime:
        self.current = moment
        return moment


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> KeyValueStore:
    return KeyValueStore(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 9, 30, tzinfo=TZ))


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger()


@pytest.fixture
def bank(store, clock, logger) -> KidSavings:
    bank = KidSavings(store, clock=clock, tz=TZ, logger=logger)
    bank.setup_parent("Pat")
    return bank
