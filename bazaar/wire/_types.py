from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from kungfu import Result

from bazaar.wire._codec import RequestResponseCodec


type Method = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
type Path = str


@dataclass(frozen=True, slots=True)
class HTTPRouteTrigger:
    method: Method
    path: Path
    headers: frozenset[str] = field(default_factory=lambda: frozenset())


type Handler = Callable[[Any], Awaitable[Result[Any, Any]]]
type Trigger = HTTPRouteTrigger | Any
type Codec = RequestResponseCodec | Any
type Exposure = tuple[Trigger, Codec]


__all__ = ("Method", "Path", "HTTPRouteTrigger", "Handler", "Trigger", "Codec", "Exposure")
