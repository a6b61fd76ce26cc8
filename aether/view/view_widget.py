"""Qt rendering backend for the galaxy.

The widget implements :class:`aether.render_loop.RenderBackend`: every
submitted :class:`~aether.motion.FrameTransform` is rasterised with numpy into
an RGB buffer which is then blitted with ``QPainter``.  Two widget flavours
share that behaviour, an OpenGL-backed one (``QOpenGLWidget``) and a raster
``QWidget`` fallback, and :func:`GalaxyViewWidget` picks the best available.

:class:`FrameDriver` owns the ``QTimer`` that calls
:meth:`aether.render_loop.RenderLoop.tick` at the display cadence.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Mapping, Optional, Tuple

from PyQt5 import QtCore, QtGui, QtWidgets

from ..errors import RenderBackendError
from ..field_generator import ParticleField
from ..motion import FrameTransform
from ..projection import PointRasterizer, Projection, RenderSettings
from ..render_loop import RenderLoop
from ..system import GalaxyStatus

__all__ = ["FrameDriver", "GalaxyViewWidget"]

log = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL_MS = 16


# ---------------------------------------------------------------------------
# OpenGL helpers


def _create_opengl_functions() -> Tuple[Optional[object], Optional[BaseException]]:
    """Safely instantiate ``QOpenGLFunctions`` when available.

    Returns a tuple ``(functions, error)`` where ``functions`` is the
    initialised OpenGL function table or ``None`` when the binding is not
    present.  ``error`` contains the exception encountered while creating or
    initialising the functions so that callers can surface a meaningful
    diagnostic message.
    """

    factory = getattr(QtGui, "QOpenGLFunctions", None)
    if factory is None:
        return None, AttributeError("PyQt5.QtGui has no attribute 'QOpenGLFunctions'")
    try:
        functions = factory()
    except Exception as exc:  # pragma: no cover - depends on bindings
        return None, exc
    try:
        functions.initializeOpenGLFunctions()
    except Exception as exc:  # pragma: no cover - depends on runtime GL state
        return None, exc
    return functions, None


# ---------------------------------------------------------------------------
# Frame driver


class FrameDriver(QtCore.QObject):
    """Ticks a :class:`RenderLoop` from a ``QTimer``.

    Stopping the driver stops the timer before the loop releases the backend,
    so no tick can reach a released backend.  An interval of 0 acquires the
    backend without ticking.
    """

    failed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        loop: RenderLoop,
        interval_ms: int = DEFAULT_FRAME_INTERVAL_MS,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.loop = loop
        self._frame_interval_ms = max(int(interval_ms), 0)
        self._timer = QtCore.QTimer(self)
        self._timer.setTimerType(QtCore.Qt.PreciseTimer)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        """Acquire the backend and start ticking; acquisition errors propagate."""

        self.loop.start()
        if self._frame_interval_ms > 0:
            self._timer.start(self._frame_interval_ms)

    def stop(self) -> None:
        self._timer.stop()
        self.loop.stop()

    def _on_timeout(self) -> None:
        try:
            transform = self.loop.tick()
        except Exception as exc:
            log.exception("Frame failed, stopping the render loop")
            self.stop()
            self.failed.emit(str(exc))
            return
        if transform is None:
            self._timer.stop()


# ---------------------------------------------------------------------------
# Widgets


class _ViewWidgetBase:
    """Common behaviour shared by both the OpenGL and raster backends."""

    def _init_view_widget(self, field: ParticleField, render_cfg: Mapping[str, object]) -> None:
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, True)
        self.setAutoFillBackground(False)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self._gl: Optional[object] = None
        self.field = field
        self._settings = RenderSettings.from_config(render_cfg)
        self._projection = Projection(
            width=max(1, self.width()),
            height=max(1, self.height()),
            fov_deg=float(render_cfg.get("fovDeg", 60.0)),
            near=float(render_cfg.get("near", 0.1)),
            far=float(render_cfg.get("far", 5000.0)),
        )
        r, g, b = self._settings.background
        self._background = QtGui.QColor.fromRgbF(r, g, b)
        self._hud = bool(render_cfg.get("hud", True))
        self._rasterizer: Optional[PointRasterizer] = None
        self._frame_bytes: Optional[bytes] = None
        self._image: Optional[QtGui.QImage] = None
        self.status_provider: Optional[Callable[[], GalaxyStatus]] = None

    # ------------------------------------------------------------------ RenderBackend
    def acquire(self) -> None:
        if self._rasterizer is not None:
            return
        self._check_context()
        self._projection = self._projection.resized(max(1, self.width()), max(1, self.height()))
        self._rasterizer = PointRasterizer(self._projection, self._settings)
        log.debug("%s backend acquired (%dx%d)", self.backend_name, self._projection.width, self._projection.height)

    def _check_context(self) -> None:
        """Raise :class:`RenderBackendError` when the widget cannot draw."""

    def release(self) -> None:
        self._rasterizer = None
        self._frame_bytes = None
        self._image = None
        self.update()
        log.debug("%s backend released", self.backend_name)

    def resize_viewport(self, width: int, height: int) -> None:
        self._projection = self._projection.resized(width, height)
        if self._rasterizer is not None:
            self._rasterizer.resize(width, height)

    def submit(self, transform: FrameTransform) -> None:
        if self._rasterizer is None:
            raise RenderBackendError("frame submitted to a released view")
        frame = self._rasterizer.render(self.field.positions, self.field.colors, transform)
        height, width = frame.shape[:2]
        # QImage does not copy: keep the bytes alive as long as the image.
        self._frame_bytes = frame.tobytes()
        self._image = QtGui.QImage(self._frame_bytes, width, height, 3 * width, QtGui.QImage.Format_RGB888)
        self.update()

    # ------------------------------------------------------------------ Rendering helpers
    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        if self._image is None:
            painter.fillRect(self.rect(), self._background)
        else:
            painter.drawImage(self.rect(), self._image)
        if self._hud and self.status_provider is not None:
            self._draw_hud(painter, self.status_provider())

    def _draw_hud(self, painter: QtGui.QPainter, status: GalaxyStatus) -> None:
        label = f"{status.current_gesture.replace('_', ' ').upper()}   zoom {status.zoom:5.1f}"
        painter.setPen(QtGui.QColor(255, 255, 255, 110 if not status.is_moving else 220))
        font = painter.font()
        font.setPointSize(10)
        font.setBold(True)
        painter.setFont(font)
        painter.drawText(self.rect().adjusted(16, 0, -16, -14), QtCore.Qt.AlignLeft | QtCore.Qt.AlignBottom, label)


class _OpenGLViewWidget(QtWidgets.QOpenGLWidget, _ViewWidgetBase):
    """OpenGL-backed renderer when the system can create a GL context."""

    backend_name = "opengl"

    def __init__(self, field: ParticleField, render_cfg: Mapping[str, object], parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QOpenGLWidget.__init__(self, parent)
        self._init_view_widget(field, render_cfg)

    def initializeGL(self) -> None:  # pragma: no cover - requires GUI context
        self._gl, error = _create_opengl_functions()
        if error is not None:
            log.warning("OpenGL initialisation failed: %s. Falling back to painter clears.", error)
        self._apply_clear_color()

    def resizeGL(self, width: int, height: int) -> None:  # pragma: no cover - requires GUI context
        self.resize_viewport(width, height)

    def _check_context(self) -> None:
        # The context is created when the widget is first shown.
        if not self.isVisible():
            return
        if not self.isValid():
            raise RenderBackendError("OpenGL context could not be created for the view")

    def _apply_clear_color(self) -> None:
        if self._gl is None:
            return
        self._gl.glClearColor(self._background.redF(), self._background.greenF(), self._background.blueF(), 1.0)

    def paintGL(self) -> None:  # pragma: no cover - requires GUI context
        if self._gl is not None:
            # GL_COLOR_BUFFER_BIT
            self._gl.glClear(0x00004000)
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def release(self) -> None:
        super().release()
        self._gl = None


class _RasterViewWidget(QtWidgets.QWidget, _ViewWidgetBase):
    """Fallback renderer using the traditional raster ``QWidget`` backend."""

    backend_name = "raster"

    def __init__(self, field: ParticleField, render_cfg: Mapping[str, object], parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QWidget.__init__(self, parent)
        self._init_view_widget(field, render_cfg)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.resize_viewport(event.size().width(), event.size().height())


def _should_use_opengl(force_backend: Optional[str]) -> bool:
    if force_backend == "raster":
        return False
    if force_backend == "opengl":
        return True

    env_backend = os.environ.get("AETHER_FORCE_BACKEND", "").strip().lower()
    if env_backend == "raster":
        return False
    if env_backend == "opengl":
        return True
    return hasattr(QtWidgets, "QOpenGLWidget")


def GalaxyViewWidget(
    field: ParticleField,
    render_cfg: Mapping[str, object],
    parent: Optional[QtWidgets.QWidget] = None,
    *,
    force_backend: Optional[str] = None,
) -> QtWidgets.QWidget:
    """Factory returning the best available renderer widget.

    Parameters
    ----------
    field:
        Particles to draw; the buffers are only read.
    render_cfg:
        The ``render`` configuration section.
    parent:
        Parent widget used by Qt for ownership.
    force_backend:
        ``"opengl"`` forces the OpenGL widget while ``"raster"`` selects the
        pure QWidget implementation.  ``None``/``"auto"`` consults the
        ``AETHER_FORCE_BACKEND`` environment variable, then the bindings.
    """

    if force_backend == "auto":
        force_backend = None
    if _should_use_opengl(force_backend):
        try:
            return _OpenGLViewWidget(field, render_cfg, parent)
        except Exception as exc:
            log.warning("Unable to initialise OpenGL backend (%r). Using raster widget instead.", exc)
    return _RasterViewWidget(field, render_cfg, parent)
