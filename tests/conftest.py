# pylint: disable=wrong-import-position
"""Root conftest for all decksync tests.

Points every config path at throwaway locations before any decksync module
is imported, so no developer config or credentials leak into the tests.
"""
import os
import tempfile

os.environ.setdefault("LLM_CONFIG_PATH", "/tmp/test_llm_config.decksync.yml")
os.environ.setdefault(
    "APPLICATION_YML_PATH", "/tmp/test_application_local.decksync.yml"
)
os.environ.setdefault("DECKSYNC_TEMP_DIR", tempfile.gettempdir())
os.environ.setdefault("LANGFUSE_ENABLED", "false")

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"
