"""Shared pytest fixtures for the opsynth test-suite."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (REPO_ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line("markers", "integration: tests crossing the CLI/API surfaces")


@pytest.fixture(autouse=True)
def _fresh_settings():
    from opsynth.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def meters_cls():
    from operator_testinfra import make_meters

    return make_meters()


@pytest.fixture
def dollars_cls():
    from operator_testinfra import make_dollars

    return make_dollars()


@pytest.fixture
def vector_cls():
    from operator_testinfra import make_vector

    return make_vector()


@pytest.fixture
def counter_cls():
    from operator_testinfra import make_counter

    return make_counter()
