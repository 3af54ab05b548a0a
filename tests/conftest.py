"""
pytest configuration shared by the modrtu tests
"""

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_port_environment(monkeypatch):
    """Drop port overrides a developer .env may have exported"""
    for name in list(os.environ):
        if name.startswith('MODRTU_PORT'):
            monkeypatch.delenv(name)
