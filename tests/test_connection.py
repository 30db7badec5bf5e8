"""
Telemetry connection lifecycle and channel draining.
"""
import asyncio
import functools
import queue
import threading

from aiohttp import web

from telemetry.config import ConnectionConfig
from telemetry.connection import (
    EventStreamWorker,
    SampleReceived,
    StreamFailed,
    StreamOpened,
    TelemetryConnection,
)
from telemetry.model import ConnectionState, OrientationSample
from telemetry.sse import SseEvent


class FakeWorker:
    """Stands in for EventStreamWorker; records its lifecycle."""

    instances = []

    def __init__(self, endpoint_url, generation, channel, connect_timeout=None):
        self.endpoint_url = endpoint_url
        self.generation = generation
        self.channel = channel
        self.started = False
        self.stopped = False
        self.joined = False
        FakeWorker.instances.append(self)

    def start(self):
        # At most one live worker at any time
        assert all(w.joined for w in FakeWorker.instances if w is not self)
        self.started = True

    def stop(self):
        self.stopped = True

    def wait(self):
        assert self.stopped
        self.joined = True
        return True

    def push(self, event):
        self.channel.put(event)


class FakeCommands:
    def __init__(self):
        self.resets = []

    def reset_orientation(self, endpoint_url):
        self.resets.append(endpoint_url)


class TestTelemetryConnection:

    def setup_method(self):
        FakeWorker.instances = []
        self.transitions = []
        self.commands = FakeCommands()
        self.connection = TelemetryConnection(
            ConnectionConfig("http://device:8080"),
            worker_factory=FakeWorker,
            commands=self.commands,
            on_state_changed=lambda state, error: self.transitions.append((state, error)),
        )

    def _worker(self):
        return FakeWorker.instances[-1]

    def test_construction_does_not_connect(self):
        assert self.connection.state == ConnectionState.DISCONNECTED
        assert FakeWorker.instances == []
        assert self.connection.poll() is None

    def test_set_endpoint_starts_worker(self):
        self.connection.set_endpoint()
        worker = self._worker()
        assert worker.started
        assert worker.endpoint_url == "http://device:8080"
        assert self.connection.state == ConnectionState.CONNECTING

    def test_open_event_transitions_to_open(self):
        self.connection.set_endpoint()
        self._worker().push(StreamOpened(self.connection.generation))
        self.connection.poll()
        assert self.connection.state == ConnectionState.OPEN
        assert self.connection.error is None

    def test_reconfigure_closes_exactly_one_prior_worker(self):
        self.connection.set_endpoint("http://a:1")
        first = self._worker()
        self.connection.set_endpoint("http://b:2")
        second = self._worker()

        assert first.stopped and first.joined
        assert second.started and not second.stopped
        assert len(FakeWorker.instances) == 2
        assert self.connection.endpoint_url == "http://b:2"

    def test_samples_last_write_wins(self):
        self.connection.set_endpoint()
        gen = self.connection.generation
        worker = self._worker()
        worker.push(StreamOpened(gen))
        worker.push(SampleReceived(gen, OrientationSample(1.0, 1.0, 1.0)))
        worker.push(SampleReceived(gen, OrientationSample(2.0, 2.0, 2.0)))
        assert self.connection.poll() == OrientationSample(2.0, 2.0, 2.0)
        assert self.connection.poll() is None

    def test_stale_generation_discarded(self):
        self.connection.set_endpoint("http://a:1")
        old = self._worker()
        self.connection.set_endpoint("http://b:2")

        old.push(SampleReceived(old.generation, OrientationSample(9.0, 9.0, 9.0)))
        old.push(StreamFailed(old.generation, "late failure"))

        assert self.connection.poll() is None
        assert self.connection.state == ConnectionState.CONNECTING
        assert self.connection.error is None

    def test_failure_enters_errored_and_closes(self):
        self.connection.set_endpoint()
        worker = self._worker()
        worker.push(StreamFailed(self.connection.generation, "Connection could not be established"))
        self.connection.poll()

        assert self.connection.state == ConnectionState.ERRORED
        assert self.connection.error == "Connection could not be established"
        assert worker.stopped and worker.joined
        assert not self.connection.is_live
        assert self.transitions[-1] == (ConnectionState.ERRORED, "Connection could not be established")

    def test_no_automatic_retry_after_failure(self):
        self.connection.set_endpoint()
        self._worker().push(StreamFailed(self.connection.generation, "boom"))
        self.connection.poll()
        self.connection.poll()
        assert len(FakeWorker.instances) == 1

    def test_samples_after_failure_ignored(self):
        self.connection.set_endpoint()
        gen = self.connection.generation
        worker = self._worker()
        worker.push(StreamFailed(gen, "boom"))
        worker.push(SampleReceived(gen, OrientationSample(1.0, 2.0, 3.0)))
        assert self.connection.poll() is None

    def test_reapply_clears_error(self):
        self.connection.set_endpoint()
        self._worker().push(StreamFailed(self.connection.generation, "boom"))
        self.connection.poll()
        self.connection.set_endpoint()
        assert self.connection.error is None
        assert self.connection.state == ConnectionState.CONNECTING

    def test_close_discards_late_events(self):
        self.connection.set_endpoint()
        worker = self._worker()
        self.connection.close()
        worker.push(SampleReceived(worker.generation, OrientationSample(1.0, 2.0, 3.0)))

        assert worker.joined
        assert self.connection.state == ConnectionState.DISCONNECTED
        assert self.connection.poll() is None

    def test_close_without_worker(self):
        self.connection.close()
        assert self.connection.state == ConnectionState.DISCONNECTED

    def test_reset_remote_orientation_uses_current_endpoint(self):
        self.connection.set_endpoint("http://b:2")
        self.connection.reset_remote_orientation()
        assert self.commands.resets == ["http://b:2"]

    def test_select_endpoint_redirects_commands_without_reconnecting(self):
        self.connection.set_endpoint("http://b:2")
        worker = self._worker()
        self.connection.select_endpoint("http://device:8080")
        self.connection.reset_remote_orientation()

        assert self.commands.resets == ["http://device:8080"]
        assert self.connection.endpoint_url == "http://device:8080"
        assert len(FakeWorker.instances) == 1
        assert not worker.stopped
        assert self.connection.state == ConnectionState.CONNECTING

    def test_reset_without_commands_is_noop(self):
        connection = TelemetryConnection(ConnectionConfig("http://x"), worker_factory=FakeWorker)
        connection.reset_remote_orientation()


class TestEventStreamWorker:

    def setup_method(self):
        self.channel = queue.Queue()
        self.worker = EventStreamWorker("http://device:8080/", 3, self.channel)
        self.worker._running = True

    def _drain(self):
        events = []
        while not self.channel.empty():
            events.append(self.channel.get_nowait())
        return events

    def test_events_url(self):
        assert self.worker.events_url == "http://device:8080/events"

    def test_data_event_becomes_sample(self):
        self.worker.handle_event(SseEvent(event="data", data='{"x": 1.0, "y": 2.0, "z": 3.0}'))
        assert self._drain() == [SampleReceived(3, OrientationSample(1.0, 2.0, 3.0))]

    def test_malformed_sample_dropped(self):
        self.worker.handle_event(SseEvent(event="data", data="{oops"))
        assert self._drain() == []
        assert self.worker.dropped_samples == 1

    def test_lifecycle_and_unknown_events_ignored(self):
        self.worker.handle_event(SseEvent(event="open", data="hello"))
        self.worker.handle_event(SseEvent(event="error", data="x"))
        self.worker.handle_event(SseEvent(event="message", data='{"x": 1, "y": 1, "z": 1}'))
        assert self._drain() == []

    def test_nothing_pushed_after_stop(self):
        self.worker.stop()
        self.worker.handle_event(SseEvent(event="data", data='{"x": 1, "y": 1, "z": 1}'))
        assert self._drain() == []

    def test_stream_against_server(self, serve):
        async def events(request):
            response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
            await response.prepare(request)
            await response.write(b'event: data\ndata: {"x": 1.0, "y": 2.0, "z": 3.0}\n\n')
            await response.write(b"event: data\ndata: not json\n\n")
            await response.write(b': keep-alive\n\nevent: data\ndata: {"x": 0.5, "y": 0, "z": -1}\n\n')
            await response.write_eof()
            return response

        app = web.Application()
        app.router.add_get("/events", events)

        async def scenario(base_url):
            worker = EventStreamWorker(base_url, 7, self.channel, connect_timeout=2.0)
            worker._running = True
            await worker._stream()
            return worker

        worker = serve(app, scenario)
        events = self._drain()

        assert events[0] == StreamOpened(7)
        assert events[1] == SampleReceived(7, OrientationSample(1.0, 2.0, 3.0))
        assert events[2] == SampleReceived(7, OrientationSample(0.5, 0.0, -1.0))
        assert isinstance(events[3], StreamFailed)
        assert "closed" in events[3].message
        assert len(events) == 4
        assert worker.dropped_samples == 1

    def test_http_error_reported(self, serve):
        app = web.Application()

        async def scenario(base_url):
            worker = EventStreamWorker(base_url, 1, self.channel, connect_timeout=2.0)
            worker._running = True
            await worker._stream()

        serve(app, scenario)
        events = self._drain()
        assert len(events) == 1
        assert isinstance(events[0], StreamFailed)
        assert "404" in events[0].message

    def test_unreachable_endpoint_reported(self):
        worker = EventStreamWorker("http://127.0.0.1:1", 2, self.channel, connect_timeout=2.0)
        worker._running = True
        asyncio.run(worker._stream())
        events = self._drain()
        assert len(events) == 1
        assert isinstance(events[0], StreamFailed)
        assert events[0].generation == 2


def endless_stream_app():
    """Device that sends one sample, then keep-alive comments until the client leaves."""
    async def events(request):
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        await response.write(b'event: data\ndata: {"x": 1.0, "y": 2.0, "z": 3.0}\n\n')
        try:
            while True:
                await response.write(b": ping\n\n")
                await asyncio.sleep(0.05)
        except ConnectionResetError:
            pass
        return response

    app = web.Application()
    app.router.add_get("/events", events)
    return app


class TestEventStreamWorkerThread:
    """The real worker thread against a stream that never ends on its own."""

    def setup_method(self):
        self.channel = queue.Queue()

    def test_start_stream_then_stop(self, serve):
        async def scenario(base_url):
            loop = asyncio.get_running_loop()
            next_event = functools.partial(self.channel.get, timeout=5.0)

            worker = EventStreamWorker(base_url, 5, self.channel, connect_timeout=2.0)
            worker.start()
            opened = await loop.run_in_executor(None, next_event)
            sample = await loop.run_in_executor(None, next_event)

            worker.stop()
            finished = await loop.run_in_executor(None, worker.wait, 5000)
            return opened, sample, finished

        opened, sample, finished = serve(endless_stream_app(), scenario)

        assert opened == StreamOpened(5)
        assert sample == SampleReceived(5, OrientationSample(1.0, 2.0, 3.0))
        assert finished
        assert self.channel.empty()

    def test_stop_right_after_start(self, serve):
        async def scenario(base_url):
            loop = asyncio.get_running_loop()
            worker = EventStreamWorker(base_url, 6, self.channel, connect_timeout=2.0)
            worker.start()
            worker.stop()
            return await loop.run_in_executor(None, worker.wait, 5000)

        assert serve(endless_stream_app(), scenario)
        assert self.channel.empty()

    def test_back_to_back_endpoints_release_every_worker(self, serve):
        workers = []

        def factory(*args, **kwargs):
            worker = EventStreamWorker(*args, **kwargs)
            workers.append(worker)
            return worker

        async def scenario(base_url):
            connection = TelemetryConnection(
                ConnectionConfig(base_url), connect_timeout=2.0, worker_factory=factory
            )

            def reconnect():
                connection.set_endpoint()
                connection.set_endpoint()
                connection.close()

            # Off the server's loop: set_endpoint() joins the previous worker
            thread = threading.Thread(target=reconnect, daemon=True)
            thread.start()
            for _ in range(100):
                if not thread.is_alive():
                    break
                await asyncio.sleep(0.05)
            return thread.is_alive(), connection

        still_running, connection = serve(endless_stream_app(), scenario)

        assert not still_running, "reconnecting blocked on a worker that never stopped"
        assert len(workers) == 2
        assert all(worker.isFinished() for worker in workers)
        assert connection.state == ConnectionState.DISCONNECTED
