"""Tagged success/failure values for boundaries that must not raise.

The parser, the cache adapter and background revalidation all degrade
silently. Each of them returns a ``Result`` internally so the point where a
failure is dropped is a single explicit call to :meth:`Result.unwrap_or`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: Any) -> Any:
        return self.value if self.error is None else default


def Ok(value: T) -> Result[T]:
    return Result(value=value)


def Err(message: str) -> Result[Any]:
    return Result(error=message or "unknown error")


__all__ = ["Result", "Ok", "Err"]
