from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: str  # 'transient', 'validation', 'authorization', 'conflict'
    detail: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[Any], Err]
