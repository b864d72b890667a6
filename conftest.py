# Keep the repository root importable so `import edge_proxy` resolves to this
# checkout when tests are run without an editable install.
import os
import sys

import httpx
import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)


@pytest.fixture
def mock_upstream(monkeypatch):
    """
    Route every outbound dispatch to ``handler`` through httpx.MockTransport.

    Returns the list of clients built so far, one per dispatched request.
    """
    from edge_proxy.forwarder import dispatcher

    clients = []
    real_build_client = dispatcher.build_client

    def _install(handler):
        def _build_client():
            client = real_build_client(transport=httpx.MockTransport(handler))
            clients.append(client)
            return client

        monkeypatch.setattr(dispatcher, "build_client", _build_client)
        return clients

    return _install
