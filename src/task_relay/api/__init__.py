# Task Relay: Task API Module
#
# Everything that touches the remote task API: signing, request
# construction and the async HTTP transport.

from .client import TaskApiClient, TaskApiError
from .request_builder import (
    SignedRequest,
    TaskConfig,
    UserIdentity,
    build_check_request,
    build_task_request,
)
from .signature import current_timestamp, sign, verify_signature

__all__ = [
    "TaskApiClient",
    "TaskApiError",
    "SignedRequest",
    "TaskConfig",
    "UserIdentity",
    "build_check_request",
    "build_task_request",
    "current_timestamp",
    "sign",
    "verify_signature",
]
