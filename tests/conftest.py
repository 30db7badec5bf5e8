"""
Shared fixtures.

Run with: python -m pytest tests/ -v
"""
import asyncio
import os
import sys

import pytest

# Ensure the packages are importable without pip install
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

# Widgets are built without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt5 import QtWidgets  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    """Signals, QThread and the window tests need an application instance."""
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


@pytest.fixture
def serve():
    """
    Run an async scenario against an aiohttp app on a local test server.

    Usage:
        result = serve(app, scenario)   # scenario(base_url) -> awaitable
    """
    from aiohttp.test_utils import TestServer

    def _serve(app, scenario):
        async def runner():
            server = TestServer(app)
            await server.start_server()
            try:
                return await scenario(str(server.make_url("/")).rstrip("/"))
            finally:
                await server.close()

        return asyncio.run(runner())

    return _serve
