import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the Protean config overlay before any domain is initialized."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
