"""
Connection and model dialogs.
"""
from PyQt5 import QtCore
from PyQt5.QtWidgets import (
    QDialog,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
)


class ConnectionDialog(QDialog):
    """
    Edit the device endpoint.

    "Set and use" emits endpoint_applied with the entered URL. "Cancel and
    reset" emits endpoint_reset with the default URL; the running stream is
    left alone.
    """

    endpoint_applied = QtCore.pyqtSignal(str)
    endpoint_reset = QtCore.pyqtSignal(str)

    def __init__(self, current_url: str, default_url: str, parent=None):
        super().__init__(parent)
        self.default_url = default_url
        self.setWindowTitle("Setup connection")
        self.setMinimumWidth(420)

        layout = QVBoxLayout()
        self.setLayout(layout)

        description = QLabel("Configure the device connection address")
        description.setObjectName("statusLabel")
        layout.addWidget(description)

        layout.addWidget(QLabel("Remote server URL (otherwise using default host)"))
        self.url_input = QLineEdit(current_url)
        self.url_input.setPlaceholderText("http://0.0.0.0:port")
        layout.addWidget(self.url_input)

        buttons = QHBoxLayout()
        apply_btn = QPushButton("Set and use")
        apply_btn.clicked.connect(self._apply)
        reset_btn = QPushButton("Cancel and reset")
        reset_btn.setObjectName("destructiveButton")
        reset_btn.clicked.connect(self._reset)
        buttons.addStretch()
        buttons.addWidget(apply_btn)
        buttons.addWidget(reset_btn)
        layout.addLayout(buttons)

    @property
    def url(self) -> str:
        return self.url_input.text().strip()

    def _apply(self):
        if not self.url:
            self.url_input.setText(self.default_url)
        self.endpoint_applied.emit(self.url)
        self.accept()

    def _reset(self):
        self.url_input.setText(self.default_url)
        self.endpoint_reset.emit(self.default_url)
        self.reject()


class ModelDialog(QDialog):
    """
    Pick a GLTF/GLB file to upload to the device server.

    Choosing a file emits file_selected immediately. "Cancel" emits
    model_cleared so the default geometry comes back.
    """

    file_selected = QtCore.pyqtSignal(str)
    model_cleared = QtCore.pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Load your own model (GLTF)")
        self.setMinimumWidth(420)

        layout = QVBoxLayout()
        self.setLayout(layout)

        layout.addWidget(QLabel("Model file (GLTF/GLB)"))

        file_row = QHBoxLayout()
        self.file_label = QLabel("No file selected")
        self.file_label.setObjectName("statusLabel")
        browse_btn = QPushButton("Browse...")
        browse_btn.clicked.connect(self._browse)
        file_row.addWidget(self.file_label, 1)
        file_row.addWidget(browse_btn)
        layout.addLayout(file_row)

        self.status_label = QLabel("")
        self.status_label.setObjectName("statusLabel")
        layout.addWidget(self.status_label)

        buttons = QHBoxLayout()
        set_btn = QPushButton("Set")
        set_btn.clicked.connect(self.accept)
        cancel_btn = QPushButton("Cancel")
        cancel_btn.setObjectName("secondaryButton")
        cancel_btn.clicked.connect(self._cancel)
        buttons.addStretch()
        buttons.addWidget(set_btn)
        buttons.addWidget(cancel_btn)
        layout.addLayout(buttons)

    def _browse(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Select model", "", "glTF models (*.glb *.gltf);;All files (*)"
        )
        if not path:
            return
        self.file_label.setText(path)
        self.status_label.setText("Uploading...")
        self.file_selected.emit(path)

    def show_status(self, message: str):
        self.status_label.setText(message)

    def _cancel(self):
        self.model_cleared.emit()
        self.reject()
