import os
import pytest

from arbitration.config import AIConfig


def pytest_addoption(parser):
    parser.addoption(
        "--real-api",
        action="store_true",
        default=False,
        help="Run tests that call the real vendor APIs (must set the *_API_KEY variables).",
    )


def pytest_configure(config):
    if config.getoption("--real-api"):
        os.environ["ARBITRATION_USE_REAL_API"] = "1"


@pytest.fixture
def offline_config():
    # explicit config so keys from the developer's environment never leak in
    return AIConfig()


@pytest.fixture
def keyed_config():
    return AIConfig(
        openai_api_key='sk-openai',
        anthropic_api_key='sk-anthropic',
        gemini_api_key='gm-key',
        cohere_api_key='co-key',
    )
