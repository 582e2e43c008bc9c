import pytest

from config import get_settings_for_environment
from main import configure_logging


@pytest.fixture(scope="session", autouse=True)
def testing_logging():
    """Route structured logs through stdlib logging at the testing level."""
    configure_logging(get_settings_for_environment("testing"))
