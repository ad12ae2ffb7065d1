"""Camera and exposure parameters of a raw image, with black and white handling."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

log = logging.getLogger(__name__)

# The inverse of the XYZ -> linear sRGB matrix.
RGB_XYZ = (
    (3.240481, -1.537152, -0.498536),
    (-0.969255, 1.875990, 0.041556),
    (0.055647, -0.204041, 1.057311),
)

_FLIP_BY_ANGLE = {270: 5, 180: 3, 90: 6}
_TIFF_ORIENTATION = {0: 1, 3: 3, 5: 8, 6: 6}


@dataclass(frozen=True)
class _FilterPattern:
    """Colour filter array described by a packed 32-bit filter word."""

    filters: int = 0

    def __call__(self, x: int, y: int) -> int:
        shift = (((y << 1) & 14) | (x & 1)) << 1
        return (self.filters >> shift) & 3


def pseudoinverse(matrix: Sequence[Sequence[float]], size: int) -> list[list[float]]:
    """Pseudoinverse of the first ``size`` rows of an N x 3 matrix, as ``size`` x 3."""
    rows = [[float(v) for v in matrix[k][:3]] for k in range(size)]
    work = [
        [1.0 if j == i + 3 else 0.0 for j in range(6)] for i in range(3)
    ]
    for i in range(3):
        for j in range(3):
            work[i][j] += sum(row[i] * row[j] for row in rows)
    for i in range(3):
        pivot = work[i][i]
        if pivot == 0.0:
            raise ValueError("matrix is singular")
        work[i] = [v / pivot for v in work[i]]
        for k in range(3):
            if k == i:
                continue
            factor = work[k][i]
            work[k] = [a - b * factor for a, b in zip(work[k], work[i])]
    return [
        [sum(work[j][k + 3] * row[k] for k in range(3)) for j in range(3)]
        for row in rows
    ]


def normalize_flip(flip: int) -> int:
    """Flip code for a rotation given in degrees; other codes pass through."""
    return _FLIP_BY_ANGLE.get((flip + 3600) % 360, flip)


def tiff_orientation(flip: int) -> int:
    """TIFF Orientation tag value for a flip code."""
    return _TIFF_ORIENTATION.get(flip, 9)


@dataclass
class RawParameters:
    """Metadata of one raw image.

    ``cfa`` maps a pixel position (x, y) to its colour index 0..3.
    Images passed to the white-balance methods are 2-D arrays indexed [y, x].
    """

    file_name: str = ""
    width: int = 0
    height: int = 0
    raw_width: int = 0
    raw_height: int = 0
    top_margin: int = 0
    left_margin: int = 0
    cdesc: str = ""
    cfa: Callable[[int, int], int] = field(default_factory=_FilterPattern)
    maximum: int = 0
    black: int = 0
    max_black: int = 0
    cblack: list[int] = field(default_factory=lambda: [0, 0, 0, 0])
    pre_mul: list[float] = field(default_factory=lambda: [0.0] * 4)
    cam_mul: list[float] = field(default_factory=lambda: [0.0] * 4)
    cam_xyz: list[list[float]] = field(
        default_factory=lambda: [[0.0] * 3 for _ in range(4)]
    )
    rgb_cam: list[list[float]] = field(
        default_factory=lambda: [[0.0] * 4 for _ in range(3)]
    )
    iso_speed: float = 0.0
    shutter: float = 0.0
    aperture: float = 0.0
    maker: str = ""
    model: str = ""
    description: str = ""
    date_time: str = ""
    colors: int = 0
    flip: int = 0

    @property
    def tiff_orientation(self) -> int:
        """TIFF Orientation tag value for this image's flip."""
        return tiff_orientation(self.flip)

    def log_exp(self) -> float:
        """Exposure value in stops, relative to ISO 100, 1 s, f/1."""
        return math.log2(
            self.iso_speed * self.shutter / (100.0 * self.aperture * self.aperture)
        )

    def black_at(self, x: int, y: int) -> int:
        """Black level of the colour at (x, y)."""
        return self.cblack[self.cfa(x, y)]

    def has_black(self) -> bool:
        """Whether any black level is set."""
        return bool(self.black) or any(self.cblack)

    def white_mult_at(self, x: int, y: int) -> float:
        """White-balance multiplier of the colour at (x, y)."""
        return self.cam_mul[self.cfa(x, y)]

    def is_same_format(self, other: RawParameters) -> bool:
        """Whether two images share size, colour pattern and colour description."""
        return (
            self.width == other.width
            and self.height == other.height
            and self.cfa == other.cfa
            and self.cdesc == other.cdesc
        )

    def adjust_black(self) -> None:
        """Fold the global black into the per-colour levels and track their range."""
        minb = (self.cblack[0] + self.black) & 0xFFFF
        self.max_black = minb
        for c in range(4):
            self.cblack[c] = (self.cblack[c] + self.black) & 0xFFFF
            minb = min(minb, self.cblack[c])
            self.max_black = max(self.max_black, self.cblack[c])
        self.black = minb

    def adjust_white(self, image: np.ndarray) -> None:
        """Complete the white balance and normalise it so its smallest factor is 1."""
        if self.cam_mul[0] == 0:
            self.auto_wb(image)
        elif self.cam_mul[1] == 0:
            self.cam_mul[1] = 1.0
        if self.colors == 3:
            self.cam_mul[3] = self.cam_mul[1]
        elif self.cam_mul[3] == 0:
            self.cam_mul[3] = 1.0
        smallest = min(self.cam_mul)
        if smallest == 0:
            raise ValueError("white balance has a zero multiplier")
        self.cam_mul = [m / smallest for m in self.cam_mul]
        log.debug("Adjusted white balance: %s", " ".join(map(str, self.cam_mul)))

    def auto_wb(self, image: np.ndarray) -> None:
        """Grey-world white balance over 8x8 blocks free of saturated pixels."""
        data = np.asarray(image)
        height, width = data.shape
        colour_map = np.array(
            [[self.cfa(x, y) for x in range(width)] for y in range(height)],
            dtype=np.int64,
        ).reshape(height, width)
        limit = int(self.maximum) - 25
        dsum = [0.0] * 4
        dcount = [0] * 4
        for row in range(0, height, 8):
            for col in range(0, width, 8):
                block = data[row : row + 8, col : col + 8]
                if (block.astype(np.int64) > limit).any():
                    continue
                colours = colour_map[row : row + 8, col : col + 8]
                for c in range(4):
                    selected = block[colours == c]
                    dsum[c] += float(selected.sum(dtype=np.float64))
                    dcount[c] += int(selected.size)
        for c in range(4):
            if dsum[c] > 0.0:
                self.cam_mul[c] = dcount[c] / dsum[c]
            else:
                self.cam_mul = list(self.pre_mul)
                break

    def cam_xyz_from_rgb_cam(self) -> None:
        """Derive the camera-from-XYZ matrix from the RGB-from-camera matrix."""
        if not self.rgb_cam[0][0]:
            return
        rgb_cam_t = [
            [self.rgb_cam[i][j] for i in range(3)] for j in range(self.colors)
        ]
        cam_rgb = pseudoinverse(rgb_cam_t, self.colors)
        for i, row in enumerate(cam_rgb):
            cam_rgb[i] = [v / self.pre_mul[i] for v in row]
        for i, row in enumerate(cam_rgb):
            self.cam_xyz[i] = [
                sum(row[k] * RGB_XYZ[k][j] for k in range(3)) for j in range(3)
            ]
        log.debug("camXyz values computed from rgbCam: %s", self.cam_xyz[: self.colors])