"""Utility helpers shared across billing view modules."""

from rest_framework.response import Response

from ..exceptions import BillingError, InsufficientStock


def error_response(exc: BillingError) -> Response:
    """Return the ``{"status": "error"}`` payload for a failed billing operation."""

    payload = {'status': 'error', 'message': exc.message}
    if exc.stage:
        payload['stage'] = exc.stage
    if exc.detail:
        payload['errors'] = exc.detail
    if isinstance(exc, InsufficientStock):
        payload.update(
            stock_id=exc.stock_id,
            available=exc.available,
            requested=exc.requested,
        )
    return Response(payload, status=exc.status_code)
