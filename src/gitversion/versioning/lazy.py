"""
Memoization cell used for values derived from the repository.

A :class:`Lazy` computes its value on first access and keeps it until it is
explicitly reset. It is not thread-safe: reads and resets must not be
interleaved from multiple threads without external locking.
"""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class Lazy(Generic[T]):
    """Compute a value once and cache it until :meth:`reset` is called."""

    def __init__(self, supplier: Callable[[], T]) -> None:
        self._supplier = supplier
        self._value: Optional[T] = None
        self._computed = False

    def get(self) -> T:
        if not self._computed:
            self._value = self._supplier()
            self._computed = True
        return self._value  # type: ignore[return-value]

    @property
    def computed(self) -> bool:
        return self._computed

    def reset(self) -> None:
        self._value = None
        self._computed = False
