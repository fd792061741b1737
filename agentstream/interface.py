from typing import Any, Callable, Literal, Protocol, TypeGuard

from msgspec import UNSET, Struct, UnsetType
from msgspec.structs import asdict
from typing_extensions import dataclass_transform


@dataclass_transform(frozen_default=True)
class Record(Struct, frozen=True, kw_only=True):
    def asdict(self) -> dict[str, Any]:
        return asdict(self)


class _Missed:
    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "agentstream.MISSING"


type Maybe[T] = T | _Missed

MISSING = _Missed()


def is_present[T](value: Maybe[T]) -> TypeGuard[T]:
    return value is not MISSING


type Unset[T] = UnsetType | T


def is_set[T](value: Unset[T]) -> TypeGuard[T]:
    return value is not UNSET


type JsonObject = dict[str, Any]


class ILogger(Protocol):
    """Subset of the loguru logger surface used across agentstream."""

    def debug(self, msg: str, /, **kwargs: Any) -> None: ...

    def info(self, msg: str, /, **kwargs: Any) -> None: ...

    def warning(self, msg: str, /, **kwargs: Any) -> None: ...

    def success(self, msg: str, /, **kwargs: Any) -> None: ...

    def exception(self, msg: str, /, **kwargs: Any) -> None: ...


type ITimer = Callable[[], float]


def epoch_ms(clock: ITimer) -> int:
    return int(clock() * 1000)
