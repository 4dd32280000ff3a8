"""Request-scoped identity passed explicitly into every service call."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Who is acting, and for which tenant."""

    user_id: str | None
    tenant_id: str
    user_name: str | None = None
    correlation_id: str | None = None

    @classmethod
    def system(cls, tenant_id: str) -> RequestContext:
        return cls(user_id=None, tenant_id=tenant_id, user_name="system")
