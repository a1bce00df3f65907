"""Explicit success/failure values threaded through the request lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful outcome carrying a value."""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> Any:
        raise ValueError(f"Called unwrap_err on Ok({self.value!r})")

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U, Any]"]) -> "Result[U, Any]":
        return fn(self.value)


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed outcome carrying the error that stopped the chain."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raise the carried error. Used at the HTTP boundary."""
        raise self.error

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self

    def and_then(self, fn: Callable[[Any], Any]) -> Err[E]:
        return self


Result = Union[Ok[T], Err[E]]
