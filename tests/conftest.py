import pytest

from fakes import FakeAdmin, SpyPopen


@pytest.fixture
def fake_admin():
    return FakeAdmin()


@pytest.fixture
def spy_popen():
    return SpyPopen()
