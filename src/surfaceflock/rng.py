from __future__ import annotations

import math
import random
from typing import MutableSequence, TypeVar

T = TypeVar("T")


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_int(self, max_value: int) -> int:
        return self._random.randrange(max_value)

    def next_angle(self) -> float:
        return self._random.uniform(0.0, 2.0 * math.pi)

    def next_gaussian(self, mean: float, stdev: float) -> float:
        if stdev <= 0.0:
            return mean
        return self._random.gauss(mean, stdev)

    def shuffle(self, items: MutableSequence[T]) -> None:
        self._random.shuffle(items)

