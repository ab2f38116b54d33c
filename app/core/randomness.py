"""
Randomness sources and the Fisher-Yates shuffle used for question and choice order.
"""
import random
import secrets
from typing import List, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Anything able to draw a uniform integer in [0, n)."""

    def randbelow(self, n: int) -> int:
        ...


class SecureRandomSource:
    """Cryptographically secure source, used in production."""

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)


class SeededRandomSource:
    """Deterministic source for reproducible permutations in tests and scripts."""

    def __init__(self, seed: int):
        self._random = random.Random(seed)

    def randbelow(self, n: int) -> int:
        return self._random.randrange(n)


def fisher_yates_shuffle(items: Sequence[T], rng: RandomSource) -> List[T]:
    """
    Return a uniformly shuffled copy of ``items``.

    Args:
        items: Elements to permute (left untouched)
        rng: Source of uniform integers

    Returns:
        New list holding a permutation of ``items``
    """
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
