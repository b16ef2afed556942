"""Domain-separated deterministic RNG using xxhash.

Every draw is a pure function of (seed, domain, key, step), so the
simulated host and per-agent policy picks are reproducible no matter which
thread asks or in which order. Keys are either small integers (walker and
entity numbers) or strings (agent ids, chunk names) hashed as UTF-8.
"""

from __future__ import annotations

import struct
from typing import Union

import xxhash

from dynregion.core.enums import Domain

Key = Union[int, str]

_HEADER = struct.Struct("<iq")
_INT_KEY = struct.Struct("<q")
_SEED_MASK = (1 << 64) - 1
_SCALE = 1.0 / (1 << 64)


class DeterministicRNG:
    """Stateless hash-based generator shaped after the ``random`` module.

    ``random``/``randint``/``uniform`` mirror their stdlib namesakes but
    take the draw coordinates instead of advancing hidden state.
    """

    __slots__ = ("_seed",)

    def __init__(self, seed: int) -> None:
        self._seed = seed

    @property
    def seed(self) -> int:
        return self._seed

    def digest(self, domain: Domain, key: Key, step: int = 0) -> int:
        hasher = xxhash.xxh64(seed=self._seed & _SEED_MASK)
        hasher.update(_HEADER.pack(domain.value, step))
        if isinstance(key, str):
            hasher.update(b"s:" + key.encode("utf-8"))
        else:
            hasher.update(_INT_KEY.pack(key))
        return hasher.intdigest()

    def random(self, domain: Domain, key: Key, step: int = 0) -> float:
        """Float in [0.0, 1.0)."""
        return self.digest(domain, key, step) * _SCALE

    def randint(self, domain: Domain, key: Key, step: int, low: int, high: int) -> int:
        """Integer in [low, high] inclusive."""
        return low + int(self.random(domain, key, step) * (high - low + 1))

    def uniform(self, domain: Domain, key: Key, step: int, low: float, high: float) -> float:
        return low + self.random(domain, key, step) * (high - low)

    def chance(self, domain: Domain, key: Key, step: int, probability: float) -> bool:
        return self.random(domain, key, step) < probability
