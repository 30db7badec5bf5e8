"""
3D canvas showing the tracked object.
"""
import logging
import math

import numpy as np
from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from scene.transform import apply_transform
from ui.styles import (
    ACCENT_ORANGE,
    BG_COLOR,
    BG_COLOR_LIGHT,
    BORDER_COLOR,
    TEXT_COLOR_DIM,
)

logger = logging.getLogger(__name__)

# Render space is Y-up, matplotlib's 3D axes are Z-up
RENDER_TO_PLOT = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.0, 0.0, -1.0],
        [0.0, 1.0, 0.0],
    ]
)


class OrientationCanvas(FigureCanvas):
    """
    Matplotlib 3D canvas for the orientation view.

    Draws the active geometry as shaded triangles after applying the
    composed render transform.
    """

    def __init__(self, parent=None, width=6, height=6, dpi=100, extent=1.5):
        """
        Initialize orientation canvas.

        Args:
            parent: Parent QWidget
            width: Figure width in inches
            height: Figure height in inches
            dpi: Dots per inch resolution
            extent: Half-size of the visible cube of space
        """
        self.fig = Figure(figsize=(width, height), dpi=dpi)
        self.ax = self.fig.add_subplot(111, projection="3d")
        super().__init__(self.fig)
        self.setParent(parent)

        self.extent = extent
        self.mesh = None
        self._light = np.array([0.4, -0.5, 0.8]) / np.linalg.norm([0.4, -0.5, 0.8])

        self.fig.patch.set_facecolor(BG_COLOR)
        self._style_axes()
        self.fig.tight_layout(pad=0.5)

    def _style_axes(self):
        ax = self.ax
        ax.set_facecolor(BG_COLOR_LIGHT)
        ax.set_xlim(-self.extent, self.extent)
        ax.set_ylim(-self.extent, self.extent)
        ax.set_zlim(-self.extent, self.extent)
        ax.set_box_aspect((1, 1, 1))
        ax.tick_params(colors=TEXT_COLOR_DIM, labelsize=6)
        for axis in (ax.xaxis, ax.yaxis, ax.zaxis):
            axis.set_pane_color((0.09, 0.09, 0.09, 1.0))
            axis.line.set_color(BORDER_COLOR)
        ax.set_xlabel("X", color=TEXT_COLOR_DIM, fontsize=7)
        ax.set_ylabel("-Z", color=TEXT_COLOR_DIM, fontsize=7)
        ax.set_zlabel("Y", color=TEXT_COLOR_DIM, fontsize=7)

    def render(self, geometry, transform) -> bool:
        """
        Draw geometry with the given transform.

        Non-finite rotations or scale are skipped and the previous frame stays.

        Args:
            geometry: Geometry with vertices/faces arrays
            transform: RenderTransform (rotation radians, scale)

        Returns:
            True if a frame was drawn
        """
        values = tuple(transform.rotation) + (transform.scale,)
        if not all(math.isfinite(v) for v in values):
            logger.debug(f"Skipping frame with non-finite transform {values}")
            return False

        vertices = apply_transform(geometry.vertices, transform) @ RENDER_TO_PLOT.T
        triangles = vertices[geometry.faces]

        if self.mesh is not None:
            self.mesh.remove()

        self.mesh = Poly3DCollection(
            triangles,
            facecolors=self._shade(triangles),
            edgecolors=BORDER_COLOR,
            linewidths=0.2,
        )
        self.ax.add_collection3d(self.mesh)
        self.draw_idle()
        return True

    def _shade(self, triangles: np.ndarray) -> np.ndarray:
        """Lambert shading of an orange material from one directional light."""
        normals = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
        lengths = np.linalg.norm(normals, axis=1)
        lengths[lengths == 0] = 1.0
        intensity = np.abs((normals / lengths[:, None]) @ self._light)
        intensity = 0.35 + 0.65 * intensity
        base = np.array([int(ACCENT_ORANGE[i:i + 2], 16) / 255.0 for i in (1, 3, 5)])
        colors = np.clip(intensity[:, None] * base[None, :], 0.0, 1.0)
        return np.hstack([colors, np.ones((len(colors), 1))])
