"""Colour mapping and orientation helpers for the merge preview."""

from __future__ import annotations

import numpy as np

MAX_RADIUS = 200


def gamma_table() -> np.ndarray:
    """8-bit gamma-2.2 lookup table for every 16-bit value."""
    g = np.float32(1.0) / np.float32(2.2)
    ramp = np.arange(65536, dtype=np.float32) / np.float32(65536.0)
    scaled = np.floor(np.float32(65536.0) * np.power(ramp, g)).astype(np.int64)
    return ((scaled >> 8) & 0xFF).astype(np.uint8)


def get_color(layer: int, v: int) -> tuple[int, int, int]:
    """RGB colour that tints brightness ``v`` for the given layer."""
    v70 = int(v * 7 / 10)
    case = abs(layer) % 7 if layer >= 0 else -(abs(layer) % 7)
    if case == 0:
        return (v70, v, v70)
    if case == 1:
        return (v70, v70, v)
    if case == 2:
        return (v, v70, v70)
    if case == 3:
        return (v, v, v70)
    if case == 4:
        return (v, v70, v)
    if case == 5:
        return (v70, v, v)
    return (v, v, v)


def clamp_radius(r: int) -> int:
    """Brush radius limited to 0..MAX_RADIUS."""
    return max(0, min(MAX_RADIUS, r))


def exposure_multiplier(slider: int, max_exposure: float, num_images: int) -> float:
    """Preview brightness multiplier for a slider position in 0..1000."""
    if num_images <= 0:
        raise ValueError("no images loaded")
    return 1.0 + slider * max_exposure / (num_images * 1000.0)


def pixel_color(
    value: float, layer: int, exp_mult: float, gamma
) -> tuple[int, int, int]:
    """Preview colour of a merged value taken from ``layer``."""
    v = int(int(value) * exp_mult)
    v = max(0, min(65535, v))
    return get_color(layer, int(gamma[v]))


class PreviewGeometry:
    """Maps preview coordinates to image coordinates for a raw flip code.

    ``width`` and ``height`` are the image size; the preview swaps them for
    the quarter-turn flips 5 and 6.
    """

    def __init__(self, width: int, height: int, flip: int) -> None:
        self.flip = flip
        self.image_width = width
        self.image_height = height
        if flip in (5, 6):
            self.width, self.height = height, width
        else:
            self.width, self.height = width, height

    def rotate(self, x: int, y: int) -> tuple[int, int]:
        """Image coordinates of the preview point (x, y)."""
        if self.flip == 3:
            return self.width - 1 - x, self.height - 1 - y
        if self.flip == 5:
            return self.height - 1 - y, x
        if self.flip == 6:
            return y, self.width - 1 - x
        return x, y

    def unrotate(self, x: int, y: int) -> tuple[int, int]:
        """Preview coordinates of the image point (x, y)."""
        for _ in range(3):
            x, y = self.rotate(x, y)
        return x, y