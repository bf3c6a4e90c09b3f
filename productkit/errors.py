"""Exception types raised by the generation clients and adapters."""


class ProductKitError(Exception):
    """Base class for ProductKit errors."""


class GenerationError(ProductKitError):
    """A generation provider call failed (transport, status or payload)."""

    def __init__(self, message: str, endpoint: str | None = None):
        super().__init__(message)
        self.endpoint = endpoint


class StorageError(ProductKitError):
    """Asset store is not configured or an upload failed."""


class StorefrontError(ProductKitError):
    """Commerce platform request failed at the transport level."""


class CopyParseError(ProductKitError):
    """LLM response did not contain a usable marketing-copy JSON object."""
