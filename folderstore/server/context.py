"""Request context passed explicitly to every store call."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Tenant and acting user of a request.

    The store trusts this value and only uses it to scope queries and stamp
    ownership and modification fields.
    """

    tenant_id: int
    actor_id: str
