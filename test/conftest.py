import threading
from pathlib import Path
from wsgiref.simple_server import WSGIRequestHandler, make_server

import pytest

import _mock_csw

DATA_ROOT = Path(__file__).parent / "_mock_csw_data"


class _QuietRequestHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="session")
def mock_csw_server():
    """Spawn a CSW-like http server in a background thread

    This fixture creates a mock CSW catalogue to be used by tests. The mock server
    is a flask application that has fixed responses to the known endpoints. It
    listens on a free port and yields its base URL. The server is shutdown when
    the test run finishes.

    Use this in tests that expect to communicate with a remote catalogue by adding
    `mock_csw_server` as an extra test parameter
    """

    http_server = make_server(
        "127.0.0.1",
        0,
        _mock_csw.csw_flask_app,
        handler_class=_QuietRequestHandler,
    )
    thread = threading.Thread(target=http_server.serve_forever, daemon=True)
    print("starting mock CSW server...")
    thread.start()
    yield f"http://127.0.0.1:{http_server.server_port}"
    print("terminating mock CSW server...")
    http_server.shutdown()
    http_server.server_close()


@pytest.fixture()
def sample_response():
    def _read(file_name: str) -> str:
        return (DATA_ROOT / file_name).read_text("utf-8")

    return _read

