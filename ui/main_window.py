"""
Main window for the gyro viewer.
"""
import logging
import math

from PyQt5 import QtCore
from PyQt5.QtWidgets import (
    QAction,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QVBoxLayout,
    QWidget,
)

from scene.driver import SceneDriver
from scene.transform import AXIS_NAMES, ROTATE_STEP, SCALE_STEPS, TransformComposer
from telemetry.config import AppConfig
from telemetry.connection import TelemetryConnection
from telemetry.model import ConnectionState
from ui.canvases import OrientationCanvas
from ui.dialogs import ConnectionDialog, ModelDialog
from ui.styles import ACCENT_GREEN, DARK_STYLESHEET

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """
    Viewer window.

    Displays:
    - 3D view of the active model, oriented by live telemetry
    - Setup menu (connection dialog, device reset)
    - Model menu (model dialog, rotation and scale offsets)
    - Connection status and the latest error next to the menu bar
    """

    def __init__(self, config: AppConfig, commands, loader):
        """
        Args:
            config: Application config (endpoint, frame rate, timeouts)
            commands: RemoteCommandWorker for reset and upload
            loader: ModelLoader resolving uploaded models
        """
        super().__init__()

        self.config = config
        self.commands = commands

        self.setWindowTitle("Gyro Viewer")
        self.resize(900, 800)

        # Application state
        self.composer = TransformComposer()
        self.connection = TelemetryConnection(
            config.connection,
            connect_timeout=config.connect_timeout,
            commands=commands,
            on_state_changed=self.handle_connection_state,
        )

        central = QWidget()
        self.setCentralWidget(central)
        root_layout = QVBoxLayout()
        root_layout.setContentsMargins(8, 8, 8, 8)
        central.setLayout(root_layout)

        self.canvas = OrientationCanvas(self, width=6, height=6, dpi=100)
        root_layout.addWidget(self.canvas)

        self._create_menu_bar()

        self.driver = SceneDriver(
            self.connection,
            self.composer,
            self.canvas,
            loader=loader,
            frame_rate=config.frame_rate,
            parent=self,
        )
        self.driver.model_error.connect(self.show_error)

        self.commands.upload_succeeded.connect(self.handle_upload_succeeded)
        self.commands.upload_failed.connect(self.handle_upload_failed)

        self.model_dialog = None

        self.setStyleSheet(DARK_STYLESHEET)

    def _create_menu_bar(self):
        """Create menu bar with Setup and Model menus."""
        menu_bar = self.menuBar()

        setup_menu = menu_bar.addMenu("Setup")
        setup_menu.addAction(self._action("Setup connection", self.open_connection_dialog))
        setup_menu.addAction(self._action("Reset device rotation", self.connection.reset_remote_orientation))

        model_menu = menu_bar.addMenu("Model")
        model_menu.addAction(self._action("Load model", self.open_model_dialog))
        model_menu.addSeparator()
        for axis, name in enumerate(AXIS_NAMES):
            model_menu.addAction(self._action(
                f"Rotate model ({name}) by {math.degrees(ROTATE_STEP):.0f}°",
                lambda _checked=False, a=axis: self.rotate_model(a, ROTATE_STEP),
            ))
        model_menu.addSeparator()
        for step in SCALE_STEPS:
            model_menu.addAction(self._action(
                f"Scale model by {step:g}",
                lambda _checked=False, s=step: self.scale_model(s),
            ))

        # Status + error on the right side of the menu bar
        corner = QWidget()
        corner_layout = QHBoxLayout()
        corner_layout.setContentsMargins(0, 0, 8, 0)
        corner.setLayout(corner_layout)
        self.status_label = QLabel("Disconnected")
        self.status_label.setObjectName("statusLabel")
        self.error_label = QLabel("")
        self.error_label.setObjectName("errorLabel")
        corner_layout.addWidget(self.error_label)
        corner_layout.addWidget(self.status_label)
        menu_bar.setCornerWidget(corner, QtCore.Qt.TopRightCorner)

    def _action(self, text, handler):
        action = QAction(text, self)
        action.triggered.connect(handler)
        return action

    # ==========================================================================
    # User commands
    # ==========================================================================

    def open_connection_dialog(self):
        dialog = ConnectionDialog(
            self.connection.endpoint_url, self.config.default_endpoint, self
        )
        dialog.endpoint_applied.connect(self.apply_endpoint)
        dialog.endpoint_reset.connect(self.reset_endpoint)
        dialog.exec_()

    def apply_endpoint(self, url: str):
        logger.info(f"Applying endpoint {url}")
        self.connection.set_endpoint(url)

    def reset_endpoint(self, url: str):
        self.connection.select_endpoint(url)

    def open_model_dialog(self):
        self.model_dialog = ModelDialog(self)
        self.model_dialog.file_selected.connect(self.upload_model)
        self.model_dialog.model_cleared.connect(self.reset_model)
        self.model_dialog.exec_()
        self.model_dialog = None

    def upload_model(self, path: str):
        self.commands.upload_model(self.connection.endpoint_url, path)

    def reset_model(self):
        self.composer.reset_model()
        self.driver.set_active_model(self.composer.active_model)

    def rotate_model(self, axis: int, delta: float):
        self.composer.rotate_axis(axis, delta)
        self.driver.request_redraw()

    def scale_model(self, delta: float):
        self.composer.scale_by(delta)
        self.driver.request_redraw()

    # ==========================================================================
    # Status updates
    # ==========================================================================

    def handle_connection_state(self, state: ConnectionState, error):
        labels = {
            ConnectionState.DISCONNECTED: "Disconnected",
            ConnectionState.CONNECTING: "Connecting...",
            ConnectionState.OPEN: "Connected",
            ConnectionState.ERRORED: "Connection error",
        }
        self.status_label.setText(labels[state])
        self.status_label.setStyleSheet(
            f"color: {ACCENT_GREEN};" if state == ConnectionState.OPEN else ""
        )
        if state == ConnectionState.ERRORED:
            self.show_error(error or "Connection could not be established")
        elif state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            self.error_label.setText("")

    def handle_upload_succeeded(self, model_url: str):
        self.composer.set_model(model_url)
        self.driver.set_active_model(self.composer.active_model)
        if self.model_dialog is not None:
            self.model_dialog.show_status("Model uploaded")

    def handle_upload_failed(self, message: str):
        self.show_error(message)
        if self.model_dialog is not None:
            self.model_dialog.show_status(f"Upload failed: {message}")

    def show_error(self, message: str):
        logger.warning(f"UI error: {message}")
        self.error_label.setText(message)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start(self, connect: bool = False):
        self.driver.start()
        if connect:
            self.apply_endpoint(self.connection.endpoint_url)

    def shutdown(self):
        self.driver.stop()
        self.connection.close()
