"""Main window hosting the galaxy view.

Besides the remote feed, gestures can be issued from the keyboard; both go
through the system mailbox so the frame tick sees them the same way.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Mapping, Optional

from PyQt5 import QtCore, QtGui, QtWidgets
from PyQt5.QtCore import Qt

from ..gestures import Gesture
from ..render_loop import RenderLoop
from ..system import GalaxySystem
from .view_widget import DEFAULT_FRAME_INTERVAL_MS, FrameDriver, GalaxyViewWidget

__all__ = ["KEY_BINDINGS", "ViewWindow"]

log = logging.getLogger(__name__)

KEY_BINDINGS = {
    Qt.Key_Up: Gesture.MOVE_UP,
    Qt.Key_Down: Gesture.MOVE_DOWN,
    Qt.Key_Left: Gesture.MOVE_LEFT,
    Qt.Key_Right: Gesture.MOVE_RIGHT,
    Qt.Key_Plus: Gesture.ZOOM_IN,
    Qt.Key_Equal: Gesture.ZOOM_IN,
    Qt.Key_Minus: Gesture.ZOOM_OUT,
    Qt.Key_Space: Gesture.STOP,
    Qt.Key_R: Gesture.ROTATE,
}


class ViewWindow(QtWidgets.QMainWindow):
    """Owns the view widget and the frame driver of one :class:`GalaxySystem`."""

    renderFailed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        system: GalaxySystem,
        render_cfg: Mapping[str, object],
        screen: Optional[QtGui.QScreen] = None,
    ) -> None:
        super().__init__(None)
        self.setWindowTitle("Aether")
        self.system = system
        backend = str(render_cfg.get("backend", "auto"))
        self.view = GalaxyViewWidget(system.field, render_cfg, self, force_backend=backend)
        self.view.status_provider = system.status
        self.setCentralWidget(self.view)

        interval = int(render_cfg.get("frameIntervalMs", DEFAULT_FRAME_INTERVAL_MS))
        self.loop = RenderLoop(system, self.view)
        self.driver = FrameDriver(self.loop, interval, self)
        self.driver.failed.connect(self.renderFailed)

        for key, gesture in KEY_BINDINGS.items():
            QtWidgets.QShortcut(QtGui.QKeySequence(key), self, activated=partial(system.post_gesture, gesture))
        QtWidgets.QShortcut(QtGui.QKeySequence(Qt.Key_F5), self, activated=self.reboot)
        QtWidgets.QShortcut(QtGui.QKeySequence(Qt.Key_Escape), self, activated=self.close)

        if screen is not None:
            self._apply_screen_geometry(screen)

    def _apply_screen_geometry(self, screen: QtGui.QScreen) -> None:
        geometry = screen.geometry()
        width = int(geometry.width() * 0.8)
        height = int(geometry.height() * 0.8)
        left = geometry.left() + (geometry.width() - width) // 2
        top = geometry.top() + (geometry.height() - height) // 2
        self.setGeometry(left, top, width, height)

    def start(self) -> None:
        self.driver.start()

    def reboot(self) -> None:
        """Tear the render session down and bring it back from scratch."""

        log.info("Rebooting render session")
        self.driver.stop()
        self.system.reset()
        self.driver.start()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.driver.stop()
        super().closeEvent(event)
