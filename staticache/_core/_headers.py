from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


class Headers(Mapping[str, str]):
    """
    Read-mostly header collection for the internal request and response models.

    Names are case-insensitive and a repeated header keeps every value. Indexing
    joins the values of a name with ``", "``.
    """

    def __init__(self, headers: Optional[Mapping[str, Union[str, List[str]]]] = None) -> None:
        self._values: Dict[str, List[str]] = {}
        for name, value in (headers or {}).items():
            for item in [value] if isinstance(value, str) else value:
                self.add(name, item)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]], exclude: Iterable[str] = ()) -> "Headers":
        """Build headers from ``(name, value)`` pairs, dropping the names in ``exclude``."""
        excluded = {name.lower() for name in exclude}
        headers = cls()
        for name, value in pairs:
            if name.lower() not in excluded:
                headers.add(name, value)
        return headers

    def add(self, name: str, value: str) -> None:
        self._values.setdefault(name.lower(), []).append(value)

    def get_list(self, name: str) -> List[str]:
        return list(self._values.get(name.lower(), []))

    def multi_items(self) -> List[Tuple[str, str]]:
        return [(name, value) for name, values in self._values.items() for value in values]

    def __getitem__(self, name: str) -> str:
        return ", ".join(self._values[name.lower()])

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Headers) and self._values == other._values

    def __repr__(self) -> str:
        return f"Headers({self.multi_items()!r})"
