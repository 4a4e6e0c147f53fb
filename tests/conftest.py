import pytest

from dirserve.testing import Harness


@pytest.fixture
def harness():
    harness = Harness()
    yield harness
    harness.teardown()
