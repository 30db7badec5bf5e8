# telemetry/connection.py
"""
Live orientation stream from the remote device.

EventStreamWorker reads ``GET {endpoint}/events`` (server-sent events) on its
own thread and pushes typed, generation-tagged events onto a channel.
TelemetryConnection lives on the GUI thread: it owns the connection state
machine, starts/stops workers when the endpoint is applied, and drains the
channel once per frame.
"""
import asyncio
import logging
import queue
from dataclasses import dataclass
from typing import Callable, Optional

import aiohttp

from .config import ConnectionConfig, DEFAULT_CONNECT_TIMEOUT
from .model import ConnectionState, OrientationSample, TelemetryParseError
from .sse import SseEvent, SseParser
from .worker import AsyncWorker

logger = logging.getLogger(__name__)


# ===================== CHANNEL EVENTS =====================

@dataclass(frozen=True)
class StreamOpened:
    generation: int


@dataclass(frozen=True)
class SampleReceived:
    generation: int
    sample: OrientationSample


@dataclass(frozen=True)
class StreamFailed:
    generation: int
    message: str


# ===================== STREAM WORKER =====================

class EventStreamWorker(AsyncWorker):
    """
    Reads one SSE stream until it fails or stop() is called.

    Every event pushed onto the channel carries this worker's generation so
    the consumer can discard anything from a connection it already replaced.
    """

    def __init__(
        self,
        endpoint_url: str,
        generation: int,
        channel: "queue.Queue",
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        parent=None,
    ):
        super().__init__(name=f"event stream #{generation}", parent=parent)
        self.events_url = ConnectionConfig(endpoint_url).url_for("events")
        self.generation = generation
        self.channel = channel
        self.connect_timeout = connect_timeout
        self.dropped_samples = 0
        self._stream_task: Optional[asyncio.Task] = None

    async def _main(self):
        self._stream_task = asyncio.current_task()
        if not self._running:
            return
        try:
            await self._stream()
        except asyncio.CancelledError:
            logger.info(f"Event stream #{self.generation} cancelled")

    async def _stream(self):
        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=self.connect_timeout,
            sock_connect=self.connect_timeout,
        )
        logger.info(f"Opening event stream {self.events_url}")

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    self.events_url,
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.status != 200:
                        self._fail(
                            f"Connection could not be established (HTTP {response.status})"
                        )
                        return

                    self._push(StreamOpened(self.generation))
                    logger.info(f"Connection established: {self.events_url}")

                    parser = SseParser()
                    async for chunk in response.content.iter_any():
                        if not self._running:
                            return
                        for event in parser.feed(chunk):
                            self.handle_event(event)

            self._fail("Connection closed by remote device")

        except asyncio.TimeoutError:
            self._fail("Connection could not be established (timed out)")
        except aiohttp.ClientError as e:
            self._fail(f"Connection could not be established: {e}")

    def handle_event(self, event: SseEvent):
        """Turn one SSE event into a channel event (runs on the worker loop)."""
        if event.event == "data":
            try:
                sample = OrientationSample.from_json(event.data)
            except TelemetryParseError as e:
                # Keep the previous rotation; a single bad payload is not a connection error
                self.dropped_samples += 1
                logger.warning(f"Dropping malformed telemetry sample: {e}")
                return
            self._push(SampleReceived(self.generation, sample))
        elif event.event in ("open", "error"):
            logger.debug(f"Lifecycle event from device: {event.event} {event.data!r}")
        else:
            logger.debug(f"Ignoring event '{event.event}'")

    def _push(self, event):
        if self._running:
            self.channel.put(event)

    def _fail(self, message: str):
        logger.error(f"Event stream #{self.generation}: {message}")
        self._push(StreamFailed(self.generation, message))

    def stop(self):
        """Stop reading; nothing is pushed onto the channel afterwards."""
        super().stop()
        task = self._stream_task
        loop = self._event_loop
        if task is not None and loop is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                # Loop closed between the check and the call: the stream is already gone
                logger.debug(f"Event stream #{self.generation} already finished")


# ===================== CONNECTION STATE MACHINE =====================

WorkerFactory = Callable[..., EventStreamWorker]
StateListener = Callable[[ConnectionState, Optional[str]], None]


class TelemetryConnection:
    """
    Lifecycle of the single live telemetry stream.

    Constructing a connection does not open anything; set_endpoint() is the
    apply action. At most one worker is alive at any time: the previous one
    is stopped and joined before the next one starts.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        worker_factory: Optional[WorkerFactory] = None,
        commands=None,
        on_state_changed: Optional[StateListener] = None,
    ):
        """
        Args:
            config: Endpoint the connection will use once applied
            connect_timeout: Seconds to wait for the stream to open
            worker_factory: Builds the stream worker (EventStreamWorker by default)
            commands: Remote command worker used for reset_remote_orientation()
            on_state_changed: Called with (state, error) after every transition
        """
        self.config = config
        self.connect_timeout = connect_timeout
        self.state = ConnectionState.DISCONNECTED
        self.error: Optional[str] = None
        self.generation = 0
        self.channel: "queue.Queue" = queue.Queue()
        self.on_state_changed = on_state_changed

        self._worker_factory = worker_factory or EventStreamWorker
        self._worker = None
        self._commands = commands

    @property
    def endpoint_url(self) -> str:
        return self.config.endpoint_url

    @property
    def is_live(self) -> bool:
        return self._worker is not None

    def set_endpoint(self, url: Optional[str] = None):
        """Apply an endpoint: close the current stream (if any) and open a new one."""
        if url:
            self.config = ConnectionConfig(endpoint_url=url)

        self._close_worker()
        self.generation += 1
        self.error = None
        self._set_state(ConnectionState.CONNECTING)

        logger.info(f"Connecting to {self.config.endpoint_url} (generation {self.generation})")
        self._worker = self._worker_factory(
            self.config.endpoint_url,
            self.generation,
            self.channel,
            connect_timeout=self.connect_timeout,
        )
        self._worker.start()

    def select_endpoint(self, url: str):
        """Point device commands at ``url`` without touching the live stream."""
        self.config = ConnectionConfig(endpoint_url=url)
        logger.info(f"Endpoint set to {url} (stream unchanged)")

    def poll(self) -> Optional[OrientationSample]:
        """
        Drain the channel (called once per frame on the GUI thread).

        Returns:
            The newest valid sample of this drain, or None
        """
        latest = None
        while True:
            try:
                event = self.channel.get_nowait()
            except queue.Empty:
                break

            if event.generation != self.generation:
                logger.debug(f"Discarding stale event from generation {event.generation}")
                continue

            if isinstance(event, StreamOpened):
                self.error = None
                self._set_state(ConnectionState.OPEN)
            elif isinstance(event, StreamFailed):
                self.error = event.message
                self._close_worker()
                self._set_state(ConnectionState.ERRORED)
            elif isinstance(event, SampleReceived):
                if self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
                    latest = event.sample

        return latest

    def close(self):
        """Tear down the stream; late events from it are discarded."""
        self._close_worker()
        self.generation += 1
        self.error = None
        self._set_state(ConnectionState.DISCONNECTED)

    def reset_remote_orientation(self):
        """Ask the device to re-zero its orientation (fire-and-forget)."""
        if self._commands is None:
            logger.warning("No remote command worker configured, cannot reset device")
            return
        self._commands.reset_orientation(self.config.endpoint_url)

    def _close_worker(self):
        worker = self._worker
        if worker is None:
            return
        self._worker = None
        worker.stop()
        worker.wait()
        logger.info(f"Closed event stream #{worker.generation}")

    def _set_state(self, state: ConnectionState):
        previous = self.state
        self.state = state
        if previous != state:
            logger.info(f"Connection state: {previous.value} -> {state.value}")
        if self.on_state_changed is not None:
            self.on_state_changed(state, self.error)
