"""Partition step records into ordered stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable

from ..models import StepRecord


@dataclass(frozen=True)
class Stage:
    """Steps sharing one ``sequence_group``, ordered by ``step_number``."""

    group_key: int
    # Step payloads may hold dicts, so only the key takes part in hashing.
    steps: tuple[StepRecord, ...] = field(hash=False)

    @property
    def size(self) -> int:
        return len(self.steps)

    @property
    def is_parallel(self) -> bool:
        """True when the stage fans its steps out side by side."""
        return self.size > 1 and any(step.is_parallel for step in self.steps)

    @property
    def step_ids(self) -> list[str]:
        return [step.id for step in self.steps]


def _ordering_key(step: StepRecord) -> tuple[int, int]:
    return (step.sequence_group, step.step_number)


def group_steps(steps: Iterable[StepRecord]) -> list[Stage]:
    """Group ``steps`` into stages ordered by ascending ``sequence_group``.

    ``sorted`` is stable, so steps tying on both keys keep their input order.
    Gaps in ``sequence_group`` numbering are skipped rather than producing
    empty stages.
    """
    ordered = sorted(steps, key=_ordering_key)
    return [
        Stage(group_key=key, steps=tuple(members))
        for key, members in groupby(ordered, key=lambda step: step.sequence_group)
    ]
