from __future__ import annotations

import dataclasses
import typing as t

T = t.TypeVar("T")


@dataclasses.dataclass(frozen=True)
class Ok(t.Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclasses.dataclass(frozen=True)
class Degraded(t.Generic[T]):
    """A usable value produced by a fallback branch, plus why it was needed."""

    value: T
    reason: str

    @property
    def degraded(self) -> bool:
        return True


Outcome = t.Union[Ok[T], Degraded[T]]
