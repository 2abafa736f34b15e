# Task Relay: Relay Module
#
# Inbound side of the relay: message envelopes, the dispatcher that turns
# them into signed calls, the page capture bridge and the local HTTP app.

from .capture import PageCapture, ProductInfo, capture_to_message
from .dispatcher import MessageDispatcher
from .protocol import (
    CONFIGURATION_INCOMPLETE_ERROR,
    MISSING_PARAMETERS_ERROR,
    Message,
    MessageType,
    Response,
)

__all__ = [
    "PageCapture",
    "ProductInfo",
    "capture_to_message",
    "MessageDispatcher",
    "CONFIGURATION_INCOMPLETE_ERROR",
    "MISSING_PARAMETERS_ERROR",
    "Message",
    "MessageType",
    "Response",
]
