# telemetry/model.py
import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class TelemetryParseError(ValueError):
    """Raised when a telemetry payload is not a valid orientation sample."""


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    ERRORED = "errored"


@dataclass(frozen=True)
class OrientationSample:
    x: float           # radians, sensor axis 1
    y: float           # radians, sensor axis 2
    z: float           # radians, sensor axis 3

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @classmethod
    def from_json(cls, payload) -> "OrientationSample":
        """
        Parse one ``data`` event payload: ``{"x": number, "y": number, "z": number}``.

        Non-finite numbers are accepted as-is (JSON ``NaN``/``Infinity`` literals
        included); only structural problems raise TelemetryParseError.
        """
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise TelemetryParseError(f"Payload is not UTF-8: {e}") from e

        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise TelemetryParseError(f"Payload is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise TelemetryParseError(
                f"Expected a JSON object, got {type(data).__name__}"
            )

        values = []
        for axis in ("x", "y", "z"):
            if axis not in data:
                raise TelemetryParseError(f"Missing axis '{axis}' in payload")
            value = data[axis]
            # bool is an int subclass; a true/false axis is a malformed payload
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TelemetryParseError(
                    f"Axis '{axis}' is not a number: {value!r}"
                )
            values.append(float(value))

        return cls(*values)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_tuple())
