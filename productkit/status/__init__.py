"""Live product status for subscribers."""

from productkit.status.publisher import (
    PRODUCT_STATUS_MESSAGES,
    PRODUCT_STATUS_PROGRESS,
    StatusEvent,
    StatusPublisher,
    sample_status,
)

__all__ = [
    "PRODUCT_STATUS_MESSAGES",
    "PRODUCT_STATUS_PROGRESS",
    "StatusEvent",
    "StatusPublisher",
    "sample_status",
]
