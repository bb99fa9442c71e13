"""Dictionary that refuses duplicate keys and resolves short names."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from mapper_engine.errors import ConfigurationSealedError

V = TypeVar("V")


class _Ambiguity:
    """Marker stored under a short name claimed by more than one entry."""

    def __init__(self, subject: str) -> None:
        self.subject = subject


class StrictDict(dict[str, V], Generic[V]):
    """Keyed store for statements and SQL fragments.

    Every ``namespace.id`` key is also reachable by its trailing ``id`` as
    long as that short name is unique; a second entry sharing the short name
    turns it into an ambiguity that raises on lookup.
    """

    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name
        self._sealed = False

    def seal(self) -> None:
        self._sealed = True

    def _check_not_sealed(self) -> None:
        if self._sealed:
            raise ConfigurationSealedError(f"{self.name} is sealed and can no longer be modified")

    def put(self, key: str, value: V) -> None:
        self._check_not_sealed()
        if key in self:
            raise ValueError(f"{self.name} already contains value for {key}")
        if "." in key:
            short_key = key.rsplit(".", 1)[1]
            if short_key not in self:
                super().__setitem__(short_key, value)
            else:
                super().__setitem__(short_key, _Ambiguity(short_key))  # type: ignore[arg-type]
        super().__setitem__(key, value)

    def __setitem__(self, key: str, value: V) -> None:
        self.put(key, value)

    def __delitem__(self, key: str) -> None:
        self._check_not_sealed()
        super().__delitem__(key)

    def update(self, *args: Any, **kwargs: Any) -> None:
        for key, value in dict(*args, **kwargs).items():
            self.put(key, value)

    def clear(self) -> None:
        self._check_not_sealed()
        super().clear()

    def __getitem__(self, key: str) -> V:
        try:
            value: Any = super().__getitem__(key)
        except KeyError:
            raise KeyError(f"{self.name} does not contain value for {key}") from None
        if isinstance(value, _Ambiguity):
            raise KeyError(
                f"{key} is ambiguous in {self.name} (try using the full name including the namespace, or rename one of the entries)"
            )
        return value

    def get(self, key: str, default: Any = None) -> Any:  # type: ignore[override]
        try:
            return self[key]
        except KeyError:
            return default

    def qualified(self) -> dict[str, V]:
        """Return only the fully-qualified entries."""
        return {key: value for key, value in self.items() if "." in key and not isinstance(value, _Ambiguity)}
