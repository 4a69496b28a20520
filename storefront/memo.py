"""Identity-keyed memoization for derived store values."""
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

_UNSET = object()


class Memo(Generic[T]):
    """
    Caches the result of `compute(*deps)` until a dependency is replaced.

    Dependencies are compared by identity. Store slices replace their
    tuples and frozen models on every change, so an unchanged object means
    unchanged content.
    """

    def __init__(self, compute: Callable[..., T]):
        self._compute = compute
        self._deps: tuple[Any, ...] | None = None
        self._value: Any = _UNSET
        self.computations = 0

    def get(self, *deps: Any) -> T:
        if self._deps is not None and len(deps) == len(self._deps) and all(
            new is old for new, old in zip(deps, self._deps)
        ):
            return self._value
        self._value = self._compute(*deps)
        self._deps = deps
        self.computations += 1
        return self._value
