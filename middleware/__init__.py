"""
Middleware package for the content backend.

Cross-cutting request handling: request id propagation and access logging.
"""

from .request_context import REQUEST_ID_HEADER, RequestContextMiddleware

__all__ = [
    'REQUEST_ID_HEADER',
    'RequestContextMiddleware'
]
