"""In-app purchase verification endpoint."""

import logging

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from lmsmobile.api.deps import Host, Services
from lmsmobile.api.schemas import (
    HTTP_FORBIDDEN,
    HTTP_UNAUTHORIZED,
    PurchasePayload,
    PurchaseResponse,
    error_response,
    failed_verification_response,
)
from lmsmobile.verify.types import Platform

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mobile-app", tags=["iap"])

HTTP_BAD_REQUEST = 400
HTTP_SERVICE_UNAVAILABLE = 503


@router.post("/iap/verify", response_model=None)
async def verify_purchase(
    request: Request,
    payload: PurchasePayload,
    services: Services,
    host: Host,
) -> PurchaseResponse | JSONResponse:
    """POST /mobile-app/iap/verify -- verify a store receipt and enroll."""
    if host is None:
        return error_response(
            "server_error", "No LMS is attached", HTTP_SERVICE_UNAVAILABLE
        )
    user_id = await host.get_current_user_id(request)
    if user_id is None:
        return error_response(
            "login_required", "You must be logged in", HTTP_UNAUTHORIZED
        )

    course_id = str(payload.course_id)
    if payload.platform == Platform.APPLE:
        if not isinstance(payload.receipt, str):
            return error_response(
                "invalid_request", "Apple receipt must be a string", HTTP_BAD_REQUEST
            )
        result = await services.apple_receipts.verify(
            payload.receipt, course_id, user_id=user_id
        )
    else:
        result = await services.google_receipts.verify(
            payload.receipt, course_id, user_id=user_id
        )

    if not result.success or result.purchase is None:
        return failed_verification_response(result, HTTP_FORBIDDEN)

    await host.enroll_student(user_id, course_id, f"iap_{payload.platform}")
    logger.info("Enrolled user %s in course %s via %s", user_id, course_id, payload.platform)
    return PurchaseResponse(course_id=course_id, purchase=result.purchase)
