"""
Custom middleware for API request logging.
"""
import logging
import time

from utils.mongo import log_api_request

logger = logging.getLogger(__name__)


class APILoggingMiddleware:
    """
    Middleware to write booking API requests to the MongoDB audit log.
    """

    # Endpoints to log
    LOGGED_ENDPOINTS = ['/api/bookings/']

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        should_log = any(
            request.path.startswith(endpoint)
            for endpoint in self.LOGGED_ENDPOINTS
        )

        if not should_log:
            return self.get_response(request)

        start_time = time.monotonic()
        response = self.get_response(request)
        execution_time_ms = (time.monotonic() - start_time) * 1000

        # JWT authentication runs inside the view, so the DRF request carries the user.
        drf_request = (getattr(response, 'renderer_context', None) or {}).get('request')
        user = getattr(drf_request, 'user', None) or getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else None

        request_params = {
            k: v[0] if len(v) == 1 else v
            for k, v in request.GET.lists()
        }

        booking_id = None
        data = getattr(response, 'data', None)
        if isinstance(data, dict):
            booking = data.get('booking')
            if isinstance(booking, dict):
                booking_id = booking.get('id')
            elif 'pnr' in data:
                booking_id = data.get('id')

        try:
            log_api_request(
                endpoint=request.path,
                method=request.method,
                user_id=user_id,
                request_params=request_params,
                response_status=response.status_code,
                execution_time_ms=round(execution_time_ms, 2),
                booking_id=booking_id
            )
        except Exception:
            # The audit log never fails a request.
            logger.exception("Error logging API request")

        return response
