"""E2E test fixtures against a running platform.

The platform and a simulated OPC PLC must already be deployed. Point the
suite at it with TWIN_E2E_BASE_URL (plus TWIN_E2E_PLC_ENDPOINT_URL or
TWIN_E2E_PUBLISHED_NODES_URL); without a base URL these tests are skipped.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from twin_e2e.config import Settings
from twin_e2e.fixture import TwinTestContext
from twin_e2e.observability.logging import configure_logging


@pytest.fixture(scope="session")
def e2e_settings() -> Settings:
    config = Settings()
    configure_logging(json_format=config.log_json, level=config.log_level)
    return config


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def twin(e2e_settings: Settings) -> AsyncGenerator[TwinTestContext, None]:
    """Registered and activated test endpoint, shared by the whole session."""
    async with TwinTestContext(e2e_settings) as context:
        yield context
