# scene/model_loader.py
"""
Geometry for the displayed object: the default unit cube or a GLB model
downloaded from the device server.

Only what the viewer draws is read from a GLB file: triangle positions and
indices of every mesh primitive. Materials, textures, node transforms and
animations are ignored. The result is centred on the origin and scaled to
unit size so any model fits the view like the default cube does.
"""
import asyncio
import json
import logging
import struct
from dataclasses import dataclass
from typing import Optional

import aiohttp
import numpy as np
from PyQt5 import QtCore

from telemetry.config import DEFAULT_REQUEST_TIMEOUT
from telemetry.worker import AsyncWorker

logger = logging.getLogger(__name__)


class ModelLoadError(ValueError):
    """Raised when a model cannot be downloaded or decoded."""


@dataclass(frozen=True)
class ActiveModel:
    url: Optional[str] = None

    @classmethod
    def default(cls) -> "ActiveModel":
        return cls(None)

    @classmethod
    def custom(cls, url: str) -> "ActiveModel":
        if not url:
            raise ValueError("custom model needs a URL")
        return cls(url)

    @property
    def is_default(self) -> bool:
        return self.url is None


@dataclass
class Geometry:
    vertices: np.ndarray    # (N, 3) float
    faces: np.ndarray       # (M, 3) int, indices into vertices
    name: str = "mesh"

    @property
    def triangles(self) -> np.ndarray:
        """(M, 3, 3) array of triangle corner positions."""
        return self.vertices[self.faces]


def unit_cube() -> Geometry:
    """Axis-aligned cube of side 1 centred on the origin."""
    h = 0.5
    vertices = np.array(
        [
            [-h, -h, -h], [h, -h, -h], [h, h, -h], [-h, h, -h],
            [-h, -h, h], [h, -h, h], [h, h, h], [-h, h, h],
        ],
        dtype=float,
    )
    faces = np.array(
        [
            [0, 2, 1], [0, 3, 2],   # back
            [4, 5, 6], [4, 6, 7],   # front
            [0, 1, 5], [0, 5, 4],   # bottom
            [3, 7, 6], [3, 6, 2],   # top
            [0, 4, 7], [0, 7, 3],   # left
            [1, 2, 6], [1, 6, 5],   # right
        ],
        dtype=int,
    )
    return Geometry(vertices=vertices, faces=faces, name="cube")


# ===================== GLB DECODING =====================

GLB_MAGIC = 0x46546C67          # b"glTF"
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942
MODE_TRIANGLES = 4

COMPONENT_TYPES = {
    5121: np.dtype("u1"),
    5123: np.dtype("<u2"),
    5125: np.dtype("<u4"),
    5126: np.dtype("<f4"),
}
TYPE_WIDTHS = {"SCALAR": 1, "VEC3": 3}


def _read_chunks(data: bytes):
    if len(data) < 12:
        raise ModelLoadError("File too short to be a GLB model")

    magic, version, length = struct.unpack_from("<III", data, 0)
    if magic != GLB_MAGIC:
        raise ModelLoadError("Not a binary glTF (GLB) file")
    if version != 2:
        raise ModelLoadError(f"Unsupported glTF version {version}")
    if length > len(data):
        raise ModelLoadError("GLB file is truncated")

    document = None
    binary = b""
    offset = 12
    while offset + 8 <= length:
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += 8
        chunk = data[offset:offset + chunk_length]
        if len(chunk) != chunk_length:
            raise ModelLoadError("GLB chunk is truncated")
        offset += chunk_length

        if chunk_type == CHUNK_JSON and document is None:
            try:
                document = json.loads(chunk.decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as e:
                raise ModelLoadError(f"Invalid glTF JSON chunk: {e}") from e
        elif chunk_type == CHUNK_BIN and not binary:
            binary = bytes(chunk)

    if not isinstance(document, dict):
        raise ModelLoadError("GLB file has no JSON chunk")
    return document, binary


def _read_accessor(document: dict, binary: bytes, index: int, expected_type: str) -> np.ndarray:
    accessor = document["accessors"][index]
    if accessor.get("type") != expected_type:
        raise ModelLoadError(f"Accessor {index} is {accessor.get('type')}, expected {expected_type}")

    dtype = COMPONENT_TYPES.get(accessor.get("componentType"))
    if dtype is None:
        raise ModelLoadError(f"Accessor {index} has unsupported component type {accessor.get('componentType')}")
    if "bufferView" not in accessor:
        raise ModelLoadError(f"Accessor {index} has no buffer view")

    view = document["bufferViews"][accessor["bufferView"]]
    width = TYPE_WIDTHS[expected_type]
    count = int(accessor["count"])
    item_size = dtype.itemsize * width
    stride = view.get("byteStride") or item_size
    start = view.get("byteOffset", 0) + accessor.get("byteOffset", 0)

    if count == 0:
        return np.zeros((0, width), dtype=dtype)
    end = start + stride * (count - 1) + item_size
    if end > len(binary):
        raise ModelLoadError(f"Accessor {index} reads past the end of the binary chunk")

    if stride == item_size:
        values = np.frombuffer(binary, dtype=dtype, count=count * width, offset=start)
        return values.reshape(count, width)

    rows = [
        np.frombuffer(binary, dtype=dtype, count=width, offset=start + i * stride)
        for i in range(count)
    ]
    return np.vstack(rows)


def parse_glb(data: bytes, name: str = "model") -> Geometry:
    """Decode triangle geometry from GLB bytes."""
    document, binary = _read_chunks(data)

    vertex_blocks = []
    face_blocks = []
    vertex_count = 0

    try:
        for mesh in document.get("meshes", []):
            for primitive in mesh.get("primitives", []):
                if primitive.get("mode", MODE_TRIANGLES) != MODE_TRIANGLES:
                    continue
                position_index = primitive.get("attributes", {}).get("POSITION")
                if position_index is None:
                    continue

                positions = _read_accessor(document, binary, position_index, "VEC3").astype(float)
                if "indices" in primitive:
                    indices = _read_accessor(document, binary, primitive["indices"], "SCALAR").ravel()
                else:
                    indices = np.arange(len(positions))

                usable = len(indices) - len(indices) % 3
                faces = indices[:usable].astype(np.int64).reshape(-1, 3)
                if faces.size and faces.max() >= len(positions):
                    raise ModelLoadError("Primitive indices point past its vertices")

                vertex_blocks.append(positions)
                face_blocks.append(faces + vertex_count)
                vertex_count += len(positions)
    except (KeyError, IndexError, TypeError) as e:
        raise ModelLoadError(f"Malformed glTF document: {e!r}") from e

    if not face_blocks or vertex_count == 0:
        raise ModelLoadError("Model contains no triangle meshes")

    vertices = np.vstack(vertex_blocks)
    faces = np.vstack(face_blocks)

    # Centre and normalise to unit size
    lower = vertices.min(axis=0)
    upper = vertices.max(axis=0)
    vertices = vertices - (lower + upper) / 2.0
    size = float(np.max(upper - lower))
    if size > 0:
        vertices = vertices / size

    logger.info(f"Decoded {name}: {len(vertices)} vertices, {len(faces)} triangles")
    return Geometry(vertices=vertices, faces=faces, name=name)


# ===================== LOADER WORKER =====================

class ModelLoader(AsyncWorker):
    """
    Downloads and decodes models off the GUI thread.

    Signals:
        model_loaded(str url, object geometry) - Model is ready to display
        load_failed(str url, str message) - Download or decoding failed
    """

    model_loaded = QtCore.pyqtSignal(str, object)
    load_failed = QtCore.pyqtSignal(str, str)

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT, parent=None):
        super().__init__(name="model loader", parent=parent)
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def request(self, url: str):
        """Resolve a model URL (called from main thread)."""
        if self.submit(self._load(url)) is None:
            self.load_failed.emit(url, "Model loader is not running")

    async def _load(self, url: str):
        try:
            data = await self._download(url)
            loop = asyncio.get_event_loop()
            geometry = await loop.run_in_executor(None, parse_glb, data, url.rsplit("/", 1)[-1])
        except ModelLoadError as e:
            logger.error(f"Could not load model {url}: {e}")
            self.load_failed.emit(url, str(e))
            return
        self.model_loaded.emit(url, geometry)

    async def _download(self, url: str) -> bytes:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        raise ModelLoadError(f"Model download failed (HTTP {response.status})")
                    return await response.read()
        except aiohttp.ClientError as e:
            raise ModelLoadError(f"Model download failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ModelLoadError("Model download timed out") from e
