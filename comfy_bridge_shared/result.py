"""
Outcome type returned by every bridge operation.

A failed upload, poll or download never raises into the host; it comes back
as `Result.Err(code, message)` and each layer passes it upward with `carry`.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")


def _code_value(code: "ErrorCode | str | Enum") -> str:
    return str(code.value if isinstance(code, Enum) else code)


@dataclass
class Result(Generic[T]):
    """
    Usage:
        res = await backend.submit(graph.to_payload(), client_id)
        if not res.ok:
            return res.carry("Prompt submission failed", node_count=len(graph))
        prompt_id = res.data
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"  # OK, BUSY, TRANSPORT_FAILURE, NO_MATCHING_OUTPUT, ...
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        return Result(ok=False, error=error, code=_code_value(code), meta=meta)

    def carry(self, fallback: str, **meta: Any) -> "Result[U]":
        """
        Re-type a failure for the caller's return type.

        Keeps the code, uses `fallback` when there is no message, and merges
        `meta` over the original metadata. An Ok result with no data counts
        as a TRANSPORT_FAILURE (a server reply missing the expected field).
        """
        if self.ok:
            return Result.Err(ErrorCode.TRANSPORT_FAILURE, fallback, **{**self.meta, **meta})
        return Result.Err(self.code, self.error or fallback, **{**self.meta, **meta})

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Apply `fn` to the data of an Ok result; failures pass through unchanged."""
        if self.ok and self.data is not None:
            return Result.Ok(fn(self.data), **self.meta)
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Data of an Ok result, or ValueError carrying the code."""
        if self.ok and self.data is not None:
            return self.data
        raise ValueError(f"[{self.code}] {self.error}")

    def unwrap_or(self, default: T) -> T:
        return self.data if (self.ok and self.data is not None) else default
