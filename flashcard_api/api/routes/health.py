from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe.

    Not authenticated and not rate limited, so load balancers can poll it
    without consuming a client's quota.
    """

    return {"status": "ok"}
