"""
Security middleware for request size limiting.
"""
import logging

from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUEST_SIZE = 2 * 1024 * 1024


class RequestSizeLimitMiddleware:
    """
    Reject write requests whose declared body is larger than MAX_REQUEST_SIZE.
    Chat prompts and profile notes are small; anything bigger is refused early.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.max_size = getattr(settings, "MAX_REQUEST_SIZE", DEFAULT_MAX_REQUEST_SIZE)

    def __call__(self, request):
        if request.method in ("POST", "PUT", "PATCH"):
            try:
                content_length = int(request.META.get("CONTENT_LENGTH") or 0)
            except (ValueError, TypeError):
                # Invalid content-length header, let it pass
                content_length = 0
            if content_length > self.max_size:
                logger.warning(
                    f"Request size limit exceeded: {content_length} bytes on {request.path} "
                    f"from IP {request.META.get('REMOTE_ADDR')}"
                )
                return JsonResponse({
                    "error": "İstek çok büyük",
                    "max_size_kb": self.max_size // 1024,
                }, status=413)

        return self.get_response(request)
