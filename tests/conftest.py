"""
Shared pytest fixtures and configuration for PolicyPath tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import json

import pytest

from policypath.utils.persistence import InMemoryStore


def make_quiz_payload(count=10, fenced=False):
    """Build a mentor quiz answer with ``count`` questions whose answer is always the B option."""
    items = [
        {
            "question": f"Question {i + 1} on the Constitution?",
            "options": [f"A{i}", f"B{i}", f"C{i}", f"D{i}"],
            "answer": f"B{i}",
        }
        for i in range(count)
    ]
    body = json.dumps(items)
    return f"```json\n{body}\n```" if fenced else body


@pytest.fixture
def store():
    """Fresh in-memory store."""
    return InMemoryStore()


@pytest.fixture
def quiz_payload():
    """Ten well-formed quiz questions, fenced the way the mentor usually replies."""
    return make_quiz_payload(10, fenced=True)


@pytest.fixture(autouse=True)
def reset_token_tracker():
    """
    Auto-fixture to reset token tracker before each test.

    This ensures tests don't interfere with each other.
    """
    from policypath.config import token_tracker

    token_tracker.reset()
    yield
    token_tracker.reset()


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
