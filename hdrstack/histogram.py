"""Histogram of 16-bit sample values."""

from __future__ import annotations

import math
from collections.abc import Iterable

BIN_COUNT = 65536


class Histogram:
    """Counts of 16-bit sample values, with percentile and fraction queries."""

    def __init__(self, values: Iterable[int] = ()) -> None:
        self._bins = [0] * BIN_COUNT
        self._num_samples = 0
        for value in values:
            self.add_value(value)

    def add_value(self, v: int) -> None:
        """Count one sample; values are taken modulo 65536."""
        self._bins[int(v) & 0xFFFF] += 1
        self._num_samples += 1

    def num_samples(self) -> int:
        """Number of samples counted so far."""
        return self._num_samples

    def percentile(self, frac: float) -> int:
        """Smallest value whose cumulative count reaches ``frac`` of the samples."""
        if not 0.0 <= frac <= 1.0:
            raise ValueError(f"fraction out of range [0, 1]: {frac}")
        limit = math.floor(self._num_samples * frac)
        result = 0
        current = self._bins[0]
        while current < limit:
            result += 1
            current += self._bins[result]
        return result

    def fraction(self, value: int) -> float:
        """Fraction of the samples that are less than or equal to ``value``."""
        if not self._num_samples:
            raise ValueError("histogram has no samples")
        upper = (int(value) & 0xFFFF) + 1
        return sum(self._bins[:upper]) / self._num_samples