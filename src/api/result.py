"""
Discriminated success/error result used by the repository layer.

Callers check `result.success` (or `isinstance(result, ResultSuccess)`) before
touching `value` / `errors`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Generic, List, Literal, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class ResultErrorDetail:
    type: str
    message: Optional[str] = None


@dataclass(frozen=True)
class ResultSuccess(Generic[T]):
    value: T
    success: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True)
class ResultError:
    errors: List[ResultErrorDetail]
    success: Literal[False] = field(default=False, init=False)

    def __post_init__(self) -> None:
        if not self.errors:
            raise ValueError("ResultError requires at least one error detail.")

    def to_json(self) -> str:
        """Serialize the error descriptors, dropping absent messages."""
        return json.dumps(
            [{k: v for k, v in asdict(e).items() if v is not None} for e in self.errors]
        )


Result = Union[ResultSuccess[T], ResultError]


# PUBLIC_INTERFACE
def ok(value: T) -> ResultSuccess[T]:
    """Wrap a value in a success result."""
    return ResultSuccess(value)


# PUBLIC_INTERFACE
def err(error_type: str, message: Optional[str] = None) -> ResultError:
    """Build a single-descriptor error result."""
    return ResultError([ResultErrorDetail(error_type, message)])
