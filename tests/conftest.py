import pytest

from fakes import NOW, FakeReads
from verticals.courts.engine import RulesEngine


@pytest.fixture
def reads():
    return FakeReads()


@pytest.fixture
def engine(reads):
    return RulesEngine(reads, clock=lambda: NOW)
