"""
Pytest configuration and fixtures for test suite.

This module:
- Detects CI environment and skips tests requiring external services
- Provides a scripted fake LLM client shared by the stage tests
"""

import os
import socket
from typing import Any, List

import pytest

# Detect CI environment
IS_CI = os.environ.get("CI") or os.environ.get("GITHUB_ACTIONS") or os.environ.get("GITLAB_CI")


def is_redis_available():
    """Check if Redis is available on localhost:6379."""
    try:
        sock = socket.create_connection(("localhost", 6379), timeout=1)
        sock.close()
        return True
    except (socket.timeout, socket.error):
        return False


def is_groq_available():
    """Check if Groq API key is configured."""
    return bool(os.environ.get("GROQ_API_KEY"))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "redis_required: mark test as requiring Redis connection")
    config.addinivalue_line("markers", "groq_required: mark test as requiring Groq API")
    config.addinivalue_line("markers", "integration: mark test as integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically skip tests based on environment."""
    for item in items:
        if "redis_required" in item.keywords and not is_redis_available():
            item.add_marker(pytest.mark.skip(reason="Redis not available (expected in CI)"))

        if "groq_required" in item.keywords and not is_groq_available():
            item.add_marker(pytest.mark.skip(reason="Groq API key not configured"))

        if IS_CI and "integration" in item.keywords and not os.environ.get("RUN_INTEGRATION_TESTS"):
            item.add_marker(pytest.mark.skip(reason="Integration tests skipped in CI by default"))


class FakeLLM:
    """
    Stand-in for GroqService.

    `responses` is consumed in call order across generate_json and
    generate_json_with_vision; an Exception instance is raised instead of
    returned. When the script runs out, `default` is returned.
    """

    def __init__(self, responses: List[Any] = None, default: Any = None) -> None:
        self.responses = list(responses or [])
        self.default = default
        self.calls: List[dict] = []

    def _next(self, kind: str, **kwargs):
        self.calls.append({"kind": kind, **kwargs})
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, Exception):
            raise item
        return item

    async def generate(self, prompt, system_instruction=None):
        return self._next("text", prompt=prompt, system_instruction=system_instruction)

    async def generate_json(self, prompt, system_instruction=None, schema=None):
        return self._next("json", prompt=prompt, system_instruction=system_instruction, schema=schema)

    async def generate_json_with_vision(self, prompt, image_url=None, system_instruction=None, schema=None):
        return self._next(
            "vision_json", prompt=prompt, image_url=image_url, system_instruction=system_instruction, schema=schema
        )


@pytest.fixture
def fake_llm():
    """Factory: fake_llm([resp1, resp2], default=...)."""
    return FakeLLM


@pytest.fixture
def redis_available():
    """Fixture indicating if Redis is available."""
    return is_redis_available()
