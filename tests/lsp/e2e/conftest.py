import sys
from pathlib import Path

import pytest
import pytest_lsp
from lsprotocol.types import (
    ClientCapabilities,
    InitializeParams,
)
from pytest_lsp import ClientServerConfig, LanguageClient

# Schemas used by the end-to-end tests
WORKSPACE_DIR = Path(__file__).parent.parent.parent / "fixtures" / "e2e-workspace"


@pytest_lsp.fixture(
    config=ClientServerConfig(
        server_command=[sys.executable, "-m", "jsls", "lsp"],
    ),
)
async def client(lsp_client: LanguageClient):
    # Setup
    params = InitializeParams(capabilities=ClientCapabilities())
    await lsp_client.initialize_session(params)

    yield

    # Teardown
    await lsp_client.shutdown_session()


@pytest.fixture
def workspace_dir() -> Path:
    return WORKSPACE_DIR
