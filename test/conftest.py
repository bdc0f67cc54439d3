# test/conftest.py
import logging

import pytest

from config_loader import Config
from fakes import FakeMonitor, FakeSession


@pytest.fixture
def session():
    return FakeSession("s1")


@pytest.fixture
def monitor(session):
    return FakeMonitor(current=session)


@pytest.fixture(autouse=True)
def reset_config_and_logging():
    """每个测试使用新的配置单例，并恢复根logger的处理器。"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    Config._instance = None
    yield
    Config._instance = None
    root.handlers[:] = handlers
    root.setLevel(level)
