"""Qt front-end: rendering widget, frame driver and main window."""

from .view_widget import FrameDriver, GalaxyViewWidget
from .window import KEY_BINDINGS, ViewWindow

__all__ = ["FrameDriver", "GalaxyViewWidget", "KEY_BINDINGS", "ViewWindow"]
