from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from followops.domain.models import Lead


class ChannelError(RuntimeError):
    pass


@dataclass(frozen=True)
class SendResult:
    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> SendResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> SendResult:
        return cls(ok=False, error=error)


class ChannelSender(Protocol):
    channel: str

    def send(self, lead: Lead, message: str) -> SendResult: ...
