"""
Errors that are allowed to reach the caller.

Everything else (a failed crop pass, a dead marketplace, an unparseable
second opinion) is expected degradation and travels as an Outcome instead
(see outcome.py). Each class carries the HTTP status web_server.py answers
with.
"""
from __future__ import annotations


class ProductScannerError(Exception):
    status: int = 500


class InputValidationError(ProductScannerError):
    """Missing or empty request field — raised before any external call."""
    status = 400


class PolicyRejection(ProductScannerError):
    """The image shows people; only product photos are accepted."""
    status = 400

    def __init__(self, message: str = "Image contains faces. Please upload only product images.") -> None:
        super().__init__(message)


class FatalExtractionFailure(ProductScannerError):
    """The first image-analysis pass failed; nothing usable can be returned."""
    status = 500
