"""Pytest configuration and fixtures."""

import io
import threading

import numpy as np
import pytest
from PIL import Image

from layertrace.types import PixelBuffer

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def make_buffer(h: int, w: int, color=(0, 0, 0), alpha=None) -> PixelBuffer:
    """Solid-color buffer, RGBA when alpha is given."""
    if alpha is None:
        data = np.zeros((h, w, 3), dtype=np.uint8)
        data[:, :] = color
    else:
        data = np.zeros((h, w, 4), dtype=np.uint8)
        data[:, :, :3] = color
        data[:, :, 3] = alpha
    return PixelBuffer(data)


def checkerboard(h: int, w: int, first=RED, second=BLUE) -> np.ndarray:
    """(h, w, 3) checkerboard of 1-pixel cells."""
    image = np.zeros((h, w, 3), dtype=np.uint8)
    yy, xx = np.mgrid[:h, :w]
    image[(yy + xx) % 2 == 0] = first
    image[(yy + xx) % 2 == 1] = second
    return image


def decode_png(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as img:
        return np.array(img)


class FakeTracer:
    """Records trace requests and returns one path per call."""

    def __init__(self):
        self.calls = []
        self.posterize_calls = []
        self._lock = threading.Lock()

    def trace(self, data, request):
        bitmap = decode_png(data)
        with self._lock:
            self.calls.append((bitmap, request))
        return (
            '<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1">'
            f'<rect width="100%" height="100%" fill="{request.background}"/>'
            f'<path d="M 0 0 Z" fill="{request.color}"/>'
            "</svg>"
        )

    def posterize(self, data, request):
        with self._lock:
            self.posterize_calls.append((decode_png(data), request))
        return '<svg xmlns="http://www.w3.org/2000/svg"><path d="M 0 0 Z" fill="#808080"/></svg>'


@pytest.fixture
def fake_tracer():
    return FakeTracer()


@pytest.fixture
def save_image(tmp_path):
    """Save an (H, W, C) array as PNG and return its path."""

    def _save(array: np.ndarray, name: str = "input.png"):
        path = tmp_path / name
        Image.fromarray(array).save(path)
        return path

    return _save
