"""A stack of bracketed exposures: ordering, alignment, cropping and layer mask."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from typing import Protocol

import numpy as np

from .raw_parameters import RawParameters

log = logging.getLogger(__name__)


class StackImage(Protocol):
    """What the stack needs from one exposure.

    ``pixels`` holds the raw values indexed [y, x] in the image's own frame;
    ``delta_x``/``delta_y`` is its displacement, changed by ``displace``.
    Images order themselves with ``<``, most exposed first.
    """

    width: int
    height: int
    delta_x: int
    delta_y: int
    relative_exposure: float
    pixels: np.ndarray

    def __lt__(self, other: StackImage) -> bool: ...

    def set_saturation_threshold(self, threshold: int) -> None: ...

    def pre_scale(self) -> None: ...

    def align_with(self, other: StackImage) -> int: ...

    def displace(self, dx: int, dy: int) -> None: ...

    def release_align_data(self) -> None: ...

    def compute_response_function(self, other: StackImage) -> None: ...

    def contains(self, x: int, y: int) -> bool: ...

    def is_saturated_around(self, x: int, y: int) -> bool: ...

    def exposure_at(self, x: int, y: int) -> float: ...


def circle_border(radius: int) -> list[int]:
    """Half-heights of a disc of ``radius``, for column offsets -radius..radius."""
    if radius < 0:
        raise ValueError(f"negative radius: {radius}")
    border = []
    for i in range(2 * radius + 1):
        if i > radius:
            tmp = (i - radius) - 0.5
        elif i < radius:
            tmp = (radius - i) - 0.5
        else:
            tmp = 0.0
        border.append(int(math.sqrt(radius * radius - tmp * tmp)))
    return border


def fatten_mask(mask: np.ndarray, radius: int) -> np.ndarray:
    """Grow the larger values of ``mask`` over a disc of ``radius``.

    Pixels beyond the borders repeat the nearest edge pixel.
    """
    source = np.asarray(mask, dtype=np.uint8)
    if radius < 0:
        raise ValueError(f"negative radius: {radius}")
    if radius == 0 or source.size == 0:
        return source.copy()
    height, width = source.shape
    circ = circle_border(radius)

    rows = np.pad(source, ((radius, radius), (0, 0)), mode="edge")
    column_max = [source]
    current = source
    for k in range(1, radius + 1):
        current = np.maximum(
            current,
            np.maximum(
                rows[radius + k : radius + k + height],
                rows[radius - k : radius - k + height],
            ),
        )
        column_max.append(current)

    padded = [np.pad(m, ((0, 0), (radius, radius)), mode="edge") for m in column_max]
    result = np.zeros_like(source)
    for offset, half in enumerate(circ):
        shifted = padded[half][:, offset : offset + width]
        np.maximum(result, shifted, out=result)
    return result


class ImageStack:
    """Exposures of one scene, ordered from most to least exposed."""

    def __init__(self) -> None:
        self.images: list[StackImage] = []
        self.width = 0
        self.height = 0
        self.flip = 0
        self.sat_threshold = 0
        self.mask = np.zeros((0, 0), dtype=np.uint8)
        self.orig_mask = np.zeros((0, 0), dtype=np.uint8)

    def __len__(self) -> int:
        return len(self.images)

    def __iter__(self) -> Iterator[StackImage]:
        return iter(self.images)

    def __getitem__(self, index: int) -> StackImage:
        return self.images[index]

    def clear(self) -> None:
        """Drop every image and the mask."""
        self.images.clear()
        self.width = self.height = 0
        self.mask = np.zeros((0, 0), dtype=np.uint8)

    def add_image(self, image: StackImage) -> int:
        """Insert ``image`` in exposure order and return its position."""
        if not self.images:
            self.width = image.width
            self.height = image.height
        self.images.append(image)
        n = len(self.images) - 1
        while n > 0 and self.images[n] < self.images[n - 1]:
            self.images[n], self.images[n - 1] = self.images[n - 1], self.images[n]
            n -= 1
        return n

    def calculate_saturation_level(
        self, params: RawParameters, use_custom_wl: bool = False
    ) -> int:
        """Estimate the white level from the brightest image and apply it to all."""
        if not self.images:
            raise ValueError("the stack has no images")
        width, height = self.width, self.height
        data = np.asarray(self.images[0].pixels)[:height, :width].astype(np.int64)
        pattern = np.array(
            [[params.cfa(c, y) for c in range(6)] for y in range(height)],
            dtype=np.int64,
        ).reshape(height, 6)
        colours = pattern[:, np.arange(width) % 6]

        threshold = width * height // 10000
        max_per_colour = [0, 0, 0, 0]
        for c in range(4):
            values = data[colours == c]
            if not values.size:
                continue
            above = np.nonzero(np.bincount(values) > threshold)[0]
            if above.size:
                max_per_colour[c] = int(above[-1])

        max_all = max(max_per_colour)
        sat = params.maximum if params.maximum else max_all
        if max_all > 0:
            sat = min(sat, max_all)
        if not use_custom_wl:
            sat = int(sat * 0.99)
        self.sat_threshold = int(sat) & 0xFFFF
        log.debug("Using white level %d", self.sat_threshold)
        for image in self.images:
            image.set_saturation_threshold(self.sat_threshold)
        return self.sat_threshold

    def align(self) -> None:
        """Align each image with the next, chaining displacements to the last one."""
        if len(self.images) < 2:
            return
        for image in self.images:
            image.pre_scale()
        errors = [
            current.align_with(following)
            for current, following in zip(self.images, self.images[1:])
        ]
        for i in range(len(self.images) - 1, 0, -1):
            following, current = self.images[i], self.images[i - 1]
            current.displace(following.delta_x, following.delta_y)
            log.debug(
                "Image %d displaced to (%d, %d) with error %s",
                i - 1,
                current.delta_x,
                current.delta_y,
                errors[i - 1],
            )
        for image in self.images:
            image.release_align_data()

    def crop(self) -> None:
        """Shrink the stack to the area every image covers."""
        dx = dy = 0
        for image in self.images:
            new_dx = max(dx, image.delta_x)
            bound = min(dx + self.width, image.delta_x + image.width)
            self.width = bound - new_dx if bound > new_dx else 0
            dx = new_dx
            new_dy = max(dy, image.delta_y)
            bound = min(dy + self.height, image.delta_y + image.height)
            self.height = bound - new_dy if bound > new_dy else 0
            dy = new_dy
        for image in self.images:
            image.displace(-dx, -dy)

    def compute_response_functions(self) -> None:
        """Fit each image's response against the next, less exposed, one."""
        for i in range(len(self.images) - 2, -1, -1):
            self.images[i].compute_response_function(self.images[i + 1])

    def generate_mask(self) -> np.ndarray:
        """Pick for every pixel the most exposed image that is present and unsaturated."""
        if not self.images:
            raise ValueError("the stack has no images")
        mask = np.zeros((self.height, self.width), dtype=np.uint8)
        last = len(self.images) - 1
        if last > 0:
            candidates = self.images[:last]
            for y in range(self.height):
                for x in range(self.width):
                    mask[y, x] = next(
                        (
                            i
                            for i, image in enumerate(candidates)
                            if image.contains(x, y)
                            and not image.is_saturated_around(x, y)
                        ),
                        last,
                    )
        self.mask = mask
        self.orig_mask = mask.copy()
        return mask

    def image_at(self, x: int, y: int) -> int:
        """Index of the image the mask selects at (x, y)."""
        return int(self.mask[y, x])

    def value(self, x: int, y: int) -> float:
        """Exposure-scaled value at (x, y) from the image the mask selects."""
        return self.images[self.image_at(x, y)].exposure_at(x, y)

    def is_layer_valid_at(self, layer: int, x: int, y: int) -> bool:
        """Whether image ``layer`` covers (x, y)."""
        return self.images[layer].contains(x, y)

    def max_exposure(self) -> float:
        """Ratio between the relative exposures of the last and first images."""
        if not self.images:
            raise ValueError("the stack has no images")
        return self.images[-1].relative_exposure / self.images[0].relative_exposure

    def is_cropped(self) -> bool:
        """Whether the stack is smaller than its first image."""
        if not self.images:
            raise ValueError("the stack has no images")
        first = self.images[0]
        return self.width != first.width or self.height != first.height