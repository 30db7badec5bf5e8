# scene/transform.py
"""
Composition of the streamed orientation with user-applied offsets.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from scene.mapping import RenderRotation
from scene.model_loader import ActiveModel

logger = logging.getLogger(__name__)

# Menu steps
ROTATE_STEP = math.pi / 2
SCALE_STEPS = (0.1, 1.0, -0.1, -1.0)
AXIS_NAMES = ("X", "Y", "Z")


@dataclass
class UserOffset:
    rotation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    scale: float = 1.0


@dataclass(frozen=True)
class RenderTransform:
    rotation: RenderRotation
    scale: float


def compose(base: Sequence[float], offset: UserOffset) -> RenderTransform:
    """
    Per-axis sum of base and offset rotation; scale comes from the offset only.

    Angles are not wrapped, so repeated offsets grow without bound.
    """
    rotation = tuple(base[i] + offset.rotation[i] for i in range(3))
    return RenderTransform(rotation=rotation, scale=offset.scale)


class TransformComposer:
    """
    Owns the user offset and the active model reference.

    Both are changed only by explicit user commands, never by telemetry, and
    survive reconnects. Changing the model leaves the offset untouched.
    """

    def __init__(self, offset: UserOffset = None):
        self.offset = offset if offset is not None else UserOffset()
        self.active_model = ActiveModel.default()

    def rotate_axis(self, axis: int, delta_radians: float):
        if axis not in (0, 1, 2):
            raise ValueError(f"axis must be 0, 1 or 2, got {axis!r}")
        self.offset.rotation[axis] += delta_radians
        logger.debug(f"Offset rotation {AXIS_NAMES[axis]} -> {self.offset.rotation[axis]:.4f}")

    def scale_by(self, delta_scale: float):
        # No floor: zero or negative scale is the caller's call
        self.offset.scale += delta_scale
        logger.debug(f"Offset scale -> {self.offset.scale:.3f}")

    def reset_model(self):
        self.active_model = ActiveModel.default()

    def set_model(self, url: str):
        self.active_model = ActiveModel.custom(url)

    def transform(self, base: Sequence[float]) -> RenderTransform:
        return compose(base, self.offset)


def euler_matrix(rotation: Sequence[float]) -> np.ndarray:
    """Rotation matrix for intrinsic X, Y, Z Euler angles (radians)."""
    rx, ry, rz = rotation
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)

    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rot_z = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rot_x @ rot_y @ rot_z


def apply_transform(vertices: np.ndarray, transform: RenderTransform) -> np.ndarray:
    """Scale then rotate an (N, 3) vertex array."""
    matrix = euler_matrix(transform.rotation)
    return (np.asarray(vertices, dtype=float) * transform.scale) @ matrix.T
