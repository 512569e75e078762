"""
Request/response codec — transport models to domain commands and back.

    class PlaceOrderIn(BaseModel):
        def to_domain(self) -> PlaceOrder: ...

    class OrderOut(BaseModel):
        @classmethod
        def from_domain(cls, dom: Result[Order, CheckoutError]) -> OrderOut: ...

    codec = RequestResponseCodec(PlaceOrderIn, OrderOut, status=status_of)
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from kungfu import Result


DomainT_co = TypeVar("DomainT_co", covariant=True)
DomainT_contra = TypeVar("DomainT_contra", contravariant=True)


class ToDomain(Protocol[DomainT_co]):
    def to_domain(self) -> DomainT_co: ...


class FromDomain(Protocol[DomainT_contra]):
    @classmethod
    def from_domain(cls, dom: DomainT_contra) -> "FromDomain[DomainT_contra]": ...


def always_ok(result: Result[Any, Any]) -> int:
    return 200


@dataclass(frozen=True, slots=True)
class RequestResponseCodec:
    request: type[ToDomain[Any]]
    response: type[FromDomain[Result[Any, Any]]]
    # Result → HTTP status code
    status: Callable[[Result[Any, Any]], int] = always_ok


__all__ = ("RequestResponseCodec", "ToDomain", "FromDomain", "always_ok")
