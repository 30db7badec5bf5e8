# scene/mapping.py
"""
Sensor space -> render space.

The device reports orientation with its "up" axis in the third slot; the
renderer is Y-up. The second and third axes are therefore swapped. This is
a fixed convention of the device, not something detected at runtime.
"""
from typing import Sequence, Tuple, Union

from telemetry.model import OrientationSample

RenderRotation = Tuple[float, float, float]


def map_orientation(sample: Union[OrientationSample, Sequence[float]]) -> RenderRotation:
    """Return ``(x, z, y)``. Values are not clamped; NaN/inf pass through."""
    if isinstance(sample, OrientationSample):
        x, y, z = sample.x, sample.y, sample.z
    else:
        x, y, z = sample
    return (x, z, y)
