# nexus/services/analysis/competitors.py
from __future__ import annotations

from typing import Iterable, Iterator, List

from nexus.utils.errors import ValidationError


MAX_COMPETITORS = 5


class CompetitorList:
    """Ordered competitor names for one analysis request.

    Names are trimmed and compared exactly (case-sensitive). Duplicates and
    entries beyond ``MAX_COMPETITORS`` are refused with a user-facing
    ValidationError; a refused ``add`` leaves the list unchanged.
    """

    def __init__(self, names: Iterable[str] = (), *, limit: int = MAX_COMPETITORS):
        self.limit = limit
        self._names: List[str] = []
        for name in names:
            self.add(name)

    def add(self, name: str) -> str:
        value = (name or "").strip()
        if not value:
            raise ValidationError("Competitor name must not be empty.")
        if len(self._names) >= self.limit:
            raise ValidationError(f"At most {self.limit} competitors can be added.")
        if value in self._names:
            raise ValidationError(f"Competitor '{value}' has already been added.")
        self._names.append(value)
        return value

    def remove(self, name: str) -> None:
        self._names.remove(name)

    def as_list(self) -> List[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names
