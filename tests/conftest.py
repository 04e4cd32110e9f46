import pytest

from hazard_map.notices import NoticeBoard
from tests.fakes import FakeStore


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notices():
    return NoticeBoard()
