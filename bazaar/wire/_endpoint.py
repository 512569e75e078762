from __future__ import annotations

from dataclasses import dataclass, field

from bazaar.wire._types import Codec, Exposure, Handler, Trigger


@dataclass(slots=True)
class Endpoint:
    """A domain handler plus the ways it is exposed."""

    handler: Handler
    exposures: list[Exposure] = field(default_factory=list[Exposure])

    @classmethod
    def from_handler(cls, handler: Handler) -> Endpoint:
        return cls(handler=handler)

    def expose(self, trigger: Trigger, codec: Codec) -> Endpoint:
        return Endpoint(
            handler=self.handler, exposures=[*self.exposures, (trigger, codec)]
        )


def endpoint(handler: Handler) -> Endpoint:
    return Endpoint.from_handler(handler)
