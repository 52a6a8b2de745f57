"""Caller identity threaded through every service call."""

from __future__ import annotations

from dataclasses import dataclass

from balance_engine.config import Settings, get_settings


@dataclass(frozen=True)
class RequestContext:
    """Who is asking, recorded on every row the engine writes.

    ``user`` ends up in ``created_by`` of billing periods; ``process`` in
    ``update_process`` of carryover rows. Authorization is the caller's job.
    """

    user: str
    process: str

    @classmethod
    def system(cls, settings: Settings | None = None) -> RequestContext:
        settings = settings or get_settings()
        return cls(user="system", process=settings.engine_process)
