"""
Matplotlib canvas widgets for orientation visualization.
"""
from ui.canvases.orientation_view import OrientationCanvas

__all__ = ['OrientationCanvas']
