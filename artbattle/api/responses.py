"""
artbattle.api.responses — Scoring results as HTTP responses
============================================================

``Success`` → 200/201, ``PartialSuccess`` → 202 with the pending award in
the body, ``Rejected`` → 403/404/409/422 depending on the reason.
``StorageError`` is mapped to 503 by the handler in :mod:`artbattle.api.main`.
"""

from __future__ import annotations

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from artbattle.engine.results import PartialSuccess, Rejected, RejectReason, Result

_REJECT_STATUS = {
    RejectReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectReason.ALREADY_LIKED: status.HTTP_409_CONFLICT,
    RejectReason.ALREADY_ATTACKED: status.HTTP_409_CONFLICT,
    RejectReason.INVALID_INPUT: 422,
    RejectReason.COUNTER_ART_REQUIRED: 422,
}


def rejection_status(reason: RejectReason) -> int:
    return _REJECT_STATUS.get(reason, status.HTTP_403_FORBIDDEN)


def result_response(result: Result, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Render *result*; raises :class:`HTTPException` for rejections."""
    if isinstance(result, Rejected):
        raise HTTPException(
            rejection_status(result.reason),
            {"reason": result.reason.value, "message": result.message},
        )
    if isinstance(result, PartialSuccess):
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "ok": True,
                **result.data,
                "warning": result.warning,
                "pending": result.pending.to_dict(),
            },
        )
    return JSONResponse(status_code=success_status, content={"ok": True, **result.data})
