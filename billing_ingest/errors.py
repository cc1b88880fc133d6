"""
Exception types raised by the ingestion stages
"""


class BillingIngestError(Exception):
    """Base class for all errors raised inside a pipeline stage."""


class NotFoundError(BillingIngestError):
    """A tracking row, named sheet or reference sheet is missing."""


class ValidationError(BillingIngestError):
    """Operator input is missing, unconfirmed or malformed."""


class ExternalServiceError(BillingIngestError):
    """The file store or lookup service failed a request."""


class PatternMismatchError(BillingIngestError):
    """A sheet name does not encode the expected period label."""
