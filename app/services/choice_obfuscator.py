"""
Per-attempt reordering of answer choices.
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from app.core.randomness import RandomSource, fisher_yates_shuffle
from app.models.test import TestQuestion


@dataclass(frozen=True)
class ObfuscatedChoices:
    """
    Choices as shown to the user.

    ``order[p]`` is the true index of the choice displayed at position ``p``.
    The order stays server-side; only ``displayed`` is ever returned.
    """

    displayed: List[str]
    order: List[int]


class ChoiceObfuscator:
    """Shuffles choice order per question with an injected randomness source."""

    def __init__(self, rng: RandomSource):
        self.rng = rng

    def obfuscate(self, question: TestQuestion, shuffle: bool) -> ObfuscatedChoices:
        choices = list(question.choices)  # type: ignore
        order = list(range(len(choices)))
        if shuffle:
            order = fisher_yates_shuffle(order, self.rng)
        return ObfuscatedChoices(displayed=display_choices(choices, order), order=order)


def display_choices(choices: Sequence[str], order: Sequence[int]) -> List[str]:
    """Lay out ``choices`` in the stored display order."""
    return [choices[i] for i in order]


def to_true_indices(order: Sequence[int], selected: Iterable[int]) -> List[int]:
    """Map selected display positions back to true choice indices, sorted."""
    return sorted({order[p] for p in selected})
