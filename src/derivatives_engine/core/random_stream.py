"""Explicitly owned, reproducible random number streams."""

from __future__ import annotations

import math
from typing import List, Optional, Tuple, Union

import numpy as np
from numpy.random import Generator, SeedSequence

from .errors import InvalidInputError

Shape = Union[int, Tuple[int, ...]]


class RandomStream:
    """Seeded normal/uniform source owned by a single engine instance.

    Scalar draws (``next_normal``) and vectorised draws (``normals``) advance
    the same generator cursor, so a stream replays the same sequence for the
    same seed and call order. Streams are not thread-safe; use ``spawn`` to
    hand each worker its own child stream.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._seed: Optional[int] = None
        self._sequence = SeedSequence()
        self._generator: Generator = np.random.default_rng(self._sequence)
        self.set_seed(seed)

    @classmethod
    def from_sequence(cls, sequence: SeedSequence) -> "RandomStream":
        stream = cls.__new__(cls)
        stream._seed = None
        stream._sequence = sequence
        stream._generator = np.random.default_rng(sequence)
        return stream

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @property
    def sequence(self) -> SeedSequence:
        return self._sequence

    def set_seed(self, seed: Optional[int]) -> None:
        """Restart the stream; ``None`` draws fresh OS entropy."""

        self._seed = seed
        self._sequence = SeedSequence(seed)
        self._generator = np.random.default_rng(self._sequence)

    def reset(self) -> None:
        """Rewind to the start of the current seed sequence."""

        self._generator = np.random.default_rng(self._sequence)

    def next_normal(self) -> float:
        return float(self._generator.standard_normal())

    def next_uniform(self) -> float:
        return float(self._generator.random())

    def normals(self, shape: Shape) -> np.ndarray:
        return self._generator.standard_normal(shape)

    def uniforms(self, shape: Shape) -> np.ndarray:
        return self._generator.random(shape)

    def correlated_normals(
        self, rho: float, size: Optional[Shape] = None
    ) -> Tuple[Union[float, np.ndarray], Union[float, np.ndarray]]:
        """Return ``(Z1, rho*Z1 + sqrt(1-rho^2)*Z2)`` for independent ``Z1, Z2``."""

        if not math.isfinite(rho) or not -1.0 <= rho <= 1.0:
            raise InvalidInputError("rho must be within [-1, 1]")
        complement = math.sqrt(1.0 - rho * rho)
        if size is None:
            first = self.next_normal()
            second = self.next_normal()
            return first, rho * first + complement * second
        draws = self._generator.standard_normal((2,) + _as_tuple(size))
        return draws[0], rho * draws[0] + complement * draws[1]

    def spawn(self, count: int) -> List["RandomStream"]:
        """Return ``count`` statistically independent child streams."""

        return [RandomStream.from_sequence(child) for child in self._sequence.spawn(count)]


def _as_tuple(shape: Shape) -> Tuple[int, ...]:
    if isinstance(shape, int):
        return (shape,)
    return tuple(shape)
