"""
Client layer: model client, streams, chat sessions and cancellation.
"""

from gemini_ai.client.builder import GenerativeModelBuilder
from gemini_ai.client.cancel import (
    CancelHandle,
    CancelReason,
    CancelToken,
    create_cancel_pair,
)
from gemini_ai.client.chat import ChatSession
from gemini_ai.client.core import GenerativeModel, model_resource_name
from gemini_ai.client.response import CallStats
from gemini_ai.client.stream import ResponseStream, aggregate_chunks

__all__ = [
    "CallStats",
    "CancelHandle",
    "CancelReason",
    "CancelToken",
    "ChatSession",
    "GenerativeModel",
    "GenerativeModelBuilder",
    "ResponseStream",
    "aggregate_chunks",
    "create_cancel_pair",
    "model_resource_name",
]
