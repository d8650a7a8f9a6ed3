"""
Default video frame source for DuoMix video exports.
Draws a background (solid colour or image) with a pulsing ring, offscreen,
using PyQt6's raster painter.
"""
from __future__ import annotations
import logging
import math
from typing import Optional, Union
import numpy as np
from PyQt6.QtCore import QPointF, Qt
from PyQt6.QtGui import QColor, QImage, QPainter, QPen

from .config import EXPORT_CONFIG
from .types import FrameArray

logger = logging.getLogger("DuoMix")

# Ring geometry relative to a 1080 px square frame
_RING_RADIUS = 300 / 1080
_RING_WIDTH = 20 / 1080


class PulseOverlay:
    """
    Frame source: background plus an orange ring that breathes over time.

    Args:
        size: (width, height) in pixels
        background: An RGB tuple, a colour name, or a path to an image that
            is stretched over the whole frame
    """

    def __init__(
        self,
        size: tuple[int, int] = EXPORT_CONFIG.video_size,
        background: Union[str, tuple[int, int, int]] = (18, 18, 18)
    ) -> None:
        self.size = (int(size[0]), int(size[1]))
        self.ring_color = QColor(255, 94, 0)
        self._background = self._make_background(background)

    def _make_background(self, background: Union[str, tuple[int, int, int]]) -> QImage:
        w, h = self.size
        image: Optional[QImage] = None
        if isinstance(background, str) and not QColor.isValidColorName(background):
            loaded = QImage(background)
            if loaded.isNull():
                logger.warning("Could not load overlay background %s, using a solid colour", background)
            else:
                image = loaded.scaled(w, h, Qt.AspectRatioMode.IgnoreAspectRatio,
                                      Qt.TransformationMode.SmoothTransformation)

        if image is None:
            color = QColor(background) if isinstance(background, str) else QColor(*background)
            if not color.isValid():
                color = QColor(18, 18, 18)
            image = QImage(w, h, QImage.Format.Format_RGB888)
            image.fill(color)
        return image.convertToFormat(QImage.Format.Format_RGB888)

    def render(self, elapsed: float) -> FrameArray:
        """Draw the frame for elapsed seconds since the export started."""
        w, h = self.size
        frame = self._background.copy()
        ms = elapsed * 1000.0
        beat = math.sin(ms / 200) * 0.05 + 1
        alpha = abs(math.sin(ms / 500)) * 0.5

        color = QColor(self.ring_color)
        color.setAlphaF(alpha)
        scale = min(w, h)

        painter = QPainter(frame)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            painter.setPen(QPen(color, max(1.0, _RING_WIDTH * scale)))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            radius = _RING_RADIUS * scale * beat
            painter.drawEllipse(QPointF(w / 2, h / 2), radius, radius)
        finally:
            painter.end()

        return qimage_to_array(frame)


def qimage_to_array(image: QImage) -> FrameArray:
    """Copy an image into a (height, width, 3) uint8 RGB array."""
    image = image.convertToFormat(QImage.Format.Format_RGB888)
    w, h = image.width(), image.height()
    stride = image.bytesPerLine()
    ptr = image.constBits()
    ptr.setsize(image.sizeInBytes())
    rows = np.frombuffer(ptr, dtype=np.uint8).reshape(h, stride)
    return rows[:, :w * 3].reshape(h, w, 3).copy()
