import os

import pytest

# Settings are read once per process; pin the test environment before any
# genie module is imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_REDIS_URL"] = ""
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "true")
os.environ["LOG_FILE"] = ""


def pytest_addoption(parser):
    parser.addoption(
        "--redis-url",
        action="store",
        default="redis://localhost:6379/15",
        help="Redis connection URL for live store tests",
    )


@pytest.fixture(scope="session")
def redis_url(pytestconfig):
    return pytestconfig.getoption("--redis-url")
