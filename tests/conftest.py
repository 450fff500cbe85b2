import pytest

from twitchchat.logging_config import error_aggregator


@pytest.fixture(autouse=True)
def _reset_error_aggregator():
    yield
    error_aggregator.clear()
