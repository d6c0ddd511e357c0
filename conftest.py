#!/usr/bin/env python3
"""
Root Test Configuration for the Load Harness
Provides global pytest configuration and plugins
"""

# Global pytest plugins configuration
pytest_plugins = ('pytest_asyncio',)

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# Set test environment variables
os.environ['TESTING'] = 'true'
os.environ['LOADHARNESS_LOG_LEVEL'] = 'DEBUG'

from loadharness.config import HarnessConfig, reset_config, set_config
from loadharness.structured_logging import configure_logging


def pytest_configure(config):
    """Apply the harness logging section from the environment, as an entry point would"""
    reset_config()
    configure_logging()


@pytest.fixture(autouse=True)
def default_harness_config():
    """Every test starts from built-in defaults, independent of the environment"""
    set_config(HarnessConfig())
    yield
    reset_config()
