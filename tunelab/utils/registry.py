"""
Name-keyed registries.

Every object the workbench builds from a string (tasks, learners, measures,
resampling strategies, tuners) is looked up in a `Registry`, so unknown
names fail with the list of available choices and the whole table can be
checked once at startup instead of on first use.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional

from tunelab.utils.exceptions import RegistryError


class Registry:
    """Ordered mapping of names to factories or specs."""

    def __init__(self, kind: str):
        self.kind = kind
        self._entries: Dict[str, Any] = {}

    def register(self, name: str, entry: Any) -> Any:
        if not name:
            raise RegistryError(f"Cannot register a {self.kind} without a name.")
        if name in self._entries:
            raise RegistryError(f"{self.kind} '{name}' is already registered.")
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> Any:
        try:
            return self._entries[name]
        except KeyError:
            raise RegistryError(
                f"Unknown {self.kind} name: {name}. Available: {self.names()}"
            ) from None

    def names(self) -> List[str]:
        return list(self._entries.keys())

    def items(self):
        return self._entries.items()

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def validate(self, check: Callable[[str, Any], Optional[str]]) -> None:
        """
        Run `check(name, entry)` on every entry.

        `check` returns an error message (or None when the entry is fine).
        All problems are collected and raised together.
        """
        problems = []
        for name, entry in self._entries.items():
            try:
                message = check(name, entry)
            except Exception as e:
                message = f"check raised {type(e).__name__}: {e}"
            if message:
                problems.append(f"{name}: {message}")
        if problems:
            raise RegistryError(
                f"Invalid {self.kind} registry entries: " + "; ".join(problems)
            )
