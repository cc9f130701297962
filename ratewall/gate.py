"""HTTP middleware that admits or rejects every inbound request."""
from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ratewall.models import RuntimeConfig
from ratewall.policy import AdmissionPolicy, Decision, Outcome
from ratewall.utils import client_ip, format_window

LOGGER = logging.getLogger(__name__)

BLOCKED_MESSAGE = "Your IP has been blocked due to abuse or rate limit violations."
CONTACT_NOTE = "Contact the owner to request unblocking."


def rate_limit_message(config: RuntimeConfig) -> str:
    if config.message:
        return config.message
    return (
        "Rate limit exceeded - your IP has been blocked. "
        f"Max {config.max_requests} requests per {format_window(config.window_ms)}."
    )


def rejection_response(decision: Decision) -> JSONResponse:
    if decision.outcome is Outcome.BLOCKED and decision.record is not None:
        return JSONResponse(
            status_code=403,
            content={
                "success": False,
                "error": BLOCKED_MESSAGE,
                "note": CONTACT_NOTE,
                "bannedAt": decision.record.banned_at,
                "reason": decision.record.reason,
            },
        )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": rate_limit_message(decision.config or RuntimeConfig()),
            "note": CONTACT_NOTE,
        },
    )


class RequestGate:
    """Middleware callable for ``app.middleware("http")``.

    Rejected requests are answered here and never reach a route.
    """

    def __init__(self, policy: AdmissionPolicy, *, trust_forwarded_for: bool = False) -> None:
        self._policy = policy
        self._trust_forwarded_for = trust_forwarded_for

    async def __call__(self, request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        ip = client_ip(request, trust_forwarded_for=self._trust_forwarded_for)
        decision = self._policy.evaluate(ip, request.method, request.url.path)
        if not decision.allowed:
            return rejection_response(decision)
        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unhandled exception", extra={"client_ip": ip})
            raise exc
        return response
