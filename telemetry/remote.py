# telemetry/remote.py
"""
One-shot HTTP commands sent to the device server.

- ``GET {endpoint}/reset`` re-zeroes the device orientation
- ``POST {endpoint}/uploadModel`` stores a GLB model the viewer then loads
  from ``{endpoint}/model.glb``
"""
import asyncio
import logging
import os

import aiohttp
from PyQt5 import QtCore

from .config import ConnectionConfig, DEFAULT_REQUEST_TIMEOUT
from .worker import AsyncWorker

logger = logging.getLogger(__name__)

MODEL_FIELD = "model"
MODEL_FILENAME = "model.glb"


class RemoteCommandError(RuntimeError):
    """A fire-and-forget device command failed."""


class UploadError(RuntimeError):
    """The model upload was rejected or never reached the server."""


class RemoteClient:
    """Async client for the device command endpoints."""

    def __init__(self, endpoint_url: str, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.config = ConnectionConfig(endpoint_url=endpoint_url)
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def model_url(self) -> str:
        return self.config.url_for(MODEL_FILENAME)

    async def reset_orientation(self):
        url = self.config.url_for("reset")
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if not 200 <= response.status < 300:
                        raise RemoteCommandError(
                            f"Reset rejected by {url} (HTTP {response.status})"
                        )
        except aiohttp.ClientError as e:
            raise RemoteCommandError(f"Reset request to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RemoteCommandError(f"Reset request to {url} timed out") from e

        logger.info("Device orientation reset")

    async def upload_model(self, path: str) -> str:
        """
        Upload a GLTF/GLB file.

        Returns:
            URL the uploaded model is served from
        """
        url = self.config.url_for("uploadModel")
        try:
            with open(path, "rb") as handle:
                payload = handle.read()
        except OSError as e:
            raise UploadError(f"Could not read model file {path}: {e}") from e

        form = aiohttp.FormData()
        form.add_field(
            MODEL_FIELD,
            payload,
            filename=os.path.basename(path),
            content_type="application/octet-stream",
        )

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, data=form) as response:
                    if response.status == 404:
                        raise UploadError(f"Server at {url} does not accept model uploads (HTTP 404)")
                    if not 200 <= response.status < 300:
                        error_text = await response.text()
                        raise UploadError(
                            f"Model upload failed (HTTP {response.status}): {error_text.strip()[:200]}"
                        )
        except aiohttp.ClientError as e:
            raise UploadError(f"Model upload to {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise UploadError(f"Model upload to {url} timed out") from e

        logger.info(f"Uploaded {os.path.basename(path)} ({len(payload)} bytes)")
        return self.model_url


class RemoteCommandWorker(AsyncWorker):
    """
    Runs device commands off the GUI thread.

    Signals:
        upload_succeeded(str model_url) - Uploaded model is ready to load
        upload_failed(str message) - Upload could not be completed
    """

    upload_succeeded = QtCore.pyqtSignal(str)
    upload_failed = QtCore.pyqtSignal(str)

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT, parent=None):
        super().__init__(name="remote commands", parent=parent)
        self.timeout = timeout

    def reset_orientation(self, endpoint_url: str):
        """Fire-and-forget reset (called from main thread)."""
        self.submit(self._reset(endpoint_url))

    def upload_model(self, endpoint_url: str, path: str):
        """Queue a model upload (called from main thread)."""
        if self.submit(self._upload(endpoint_url, path)) is None:
            self.upload_failed.emit("Remote command worker is not running")

    async def _reset(self, endpoint_url: str):
        try:
            await RemoteClient(endpoint_url, self.timeout).reset_orientation()
        except RemoteCommandError as e:
            logger.error(f"Device reset failed: {e}")

    async def _upload(self, endpoint_url: str, path: str):
        try:
            model_url = await RemoteClient(endpoint_url, self.timeout).upload_model(path)
        except UploadError as e:
            logger.error(f"Model upload failed: {e}")
            self.upload_failed.emit(str(e))
            return
        self.upload_succeeded.emit(model_url)
