"""
ASGI middleware package.
"""
from retentionos.middleware.error_handler import ErrorHandlerMiddleware
from retentionos.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
    "REQUEST_ID_HEADER",
]
