import pytest
from fastapi.testclient import TestClient

from upload_server.app import create_app
from upload_server.config import ServerConfig
from upload_server.storage import DiskStore

TEST_TOKEN = "test-secret-token"


async def stream_of(*chunks):
    """Async byte stream over the given chunks."""
    for chunk in chunks:
        yield chunk


@pytest.fixture
def document_root(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def make_client(document_root):
    """Build a TestClient for a config; keyword arguments override the defaults."""
    clients = []

    def _make(storage=None, **overrides):
        options = {
            "document_root": str(document_root),
            "token": TEST_TOKEN,
            "max_upload_size": 1024,
        }
        options.update(overrides)
        server_config = ServerConfig(**options)
        app = create_app(server_config, storage=storage)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def disk_store(document_root):
    return DiskStore(document_root)
