# telemetry/config.py
"""
Runtime configuration for the gyro viewer.

Values come from the environment (a ``.env`` file is loaded by ``main.py``
before this module is consulted). Command line flags override them there.
"""
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_ENDPOINT_URL = "http://localhost:8080"
DEFAULT_FRAME_RATE = 30
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class ConnectionConfig:
    endpoint_url: str = DEFAULT_ENDPOINT_URL

    @property
    def base_url(self) -> str:
        return self.endpoint_url.rstrip("/")

    def url_for(self, path: str) -> str:
        """Build ``{endpoint}/{path}`` without doubling slashes."""
        return f"{self.base_url}/{path.lstrip('/')}"


@dataclass(frozen=True)
class AppConfig:
    connection: ConnectionConfig
    frame_rate: int = DEFAULT_FRAME_RATE
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def default_endpoint(self) -> str:
        return self.connection.endpoint_url


def _read_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_config(endpoint_url: Optional[str] = None, frame_rate: Optional[int] = None) -> AppConfig:
    """
    Build the application config from the environment.

    Args:
        endpoint_url: Overrides GYRO_ENDPOINT_URL when given
        frame_rate: Overrides GYRO_FRAME_RATE when given
    """
    endpoint = endpoint_url or os.getenv("GYRO_ENDPOINT_URL", DEFAULT_ENDPOINT_URL)
    fps = frame_rate if frame_rate is not None else _read_number(
        "GYRO_FRAME_RATE", DEFAULT_FRAME_RATE, int
    )
    if fps <= 0:
        raise ValueError(f"frame rate must be positive, got {fps}")

    return AppConfig(
        connection=ConnectionConfig(endpoint_url=endpoint),
        frame_rate=fps,
        connect_timeout=_read_number("GYRO_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT, float),
        request_timeout=_read_number("GYRO_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
        log_level=os.getenv("GYRO_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
