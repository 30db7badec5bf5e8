# scene/driver.py
import logging
from typing import Optional

from PyQt5 import QtCore

from scene.mapping import map_orientation
from scene.model_loader import ActiveModel, Geometry, unit_cube
from scene.transform import RenderTransform, TransformComposer

logger = logging.getLogger(__name__)


class SceneDriver(QtCore.QObject):
    """
    Per-frame inputs of the 3D view.

    Each tick drains the telemetry connection, composes the newest
    orientation with the user offset and redraws the view if the transform
    or the geometry changed since the last frame. Custom models are resolved
    by the model loader; until a model resolves the previous geometry stays
    on screen while rotation keeps updating.

    Signals:
        frame_rendered(object transform) - A new frame was drawn
        model_error(str message) - The model loader could not resolve a model
    """

    frame_rendered = QtCore.pyqtSignal(object)
    model_error = QtCore.pyqtSignal(str)

    def __init__(self, connection, composer: TransformComposer, view, loader=None,
                 frame_rate: int = 30, parent=None):
        """
        Args:
            connection: TelemetryConnection polled once per tick
            composer: Holds the user offset and active model
            view: Anything with render(geometry, transform) -> bool
            loader: ModelLoader resolving custom model URLs
            frame_rate: Ticks per second
        """
        super().__init__(parent)
        self.connection = connection
        self.composer = composer
        self.view = view
        self.loader = loader
        self.frame_rate = frame_rate

        self.base_rotation = (0.0, 0.0, 0.0)
        self.geometry: Geometry = unit_cube()
        self.pending_model: Optional[str] = None
        self.last_transform: Optional[RenderTransform] = None
        self._dirty = True

        if loader is not None:
            loader.model_loaded.connect(self._on_model_loaded)
            loader.load_failed.connect(self._on_model_failed)

        self._timer = QtCore.QTimer(self)
        self._timer.timeout.connect(self.tick)

    # ==========================================================================
    # Render loop
    # ==========================================================================

    def start(self):
        interval_ms = max(1, int(1000 / self.frame_rate))
        self._timer.start(interval_ms)
        logger.info(f"Render loop started at {self.frame_rate} fps")

    def stop(self):
        self._timer.stop()

    def tick(self) -> bool:
        """Run one frame. Returns True if the view was redrawn."""
        sample = self.connection.poll()
        if sample is not None:
            self.base_rotation = map_orientation(sample)

        transform = self.composer.transform(self.base_rotation)
        if not self._dirty and transform == self.last_transform:
            return False

        drawn = self.view.render(self.geometry, transform)
        self.last_transform = transform
        self._dirty = False
        if drawn:
            self.frame_rendered.emit(transform)
        return bool(drawn)

    def request_redraw(self):
        self._dirty = True

    # ==========================================================================
    # Active model
    # ==========================================================================

    def set_active_model(self, model: ActiveModel):
        """Show the default cube now, or start resolving a custom model."""
        if model.is_default:
            self.pending_model = None
            self.geometry = unit_cube()
            self._dirty = True
            logger.info("Showing default geometry")
            return

        if self.loader is None:
            self.model_error.emit("No model loader available")
            return

        self.pending_model = model.url
        logger.info(f"Resolving model {model.url}")
        self.loader.request(model.url)

    def _on_model_loaded(self, url: str, geometry):
        if url != self.pending_model:
            logger.debug(f"Ignoring model {url}, no longer requested")
            return
        self.pending_model = None
        self.geometry = geometry
        self._dirty = True

    def _on_model_failed(self, url: str, message: str):
        if url != self.pending_model:
            return
        self.pending_model = None
        # Prior geometry stays visible
        self.model_error.emit(f"Model loader: {message}")
