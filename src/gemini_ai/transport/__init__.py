"""
Transport layer: request/response shapes and the httpx implementation.
"""

from gemini_ai.transport.base import Transport, TransportRequest, TransportResponse
from gemini_ai.transport.http import API_KEY_HEADER, HttpTransport

__all__ = [
    "API_KEY_HEADER",
    "HttpTransport",
    "Transport",
    "TransportRequest",
    "TransportResponse",
]
