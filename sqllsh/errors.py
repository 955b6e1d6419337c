"""
Exceptions raised by sqllsh.

Errors coming from the database driver are never wrapped; they reach the
caller unchanged.
"""


class LSHError(Exception):
    """Base class for errors raised by sqllsh."""


class SignatureSizeError(LSHError, ValueError):
    """A signature does not have exactly k * l hash values."""


class SignatureValueError(LSHError, ValueError):
    """A signature holds a value that cannot be stored in a BIGINT column."""


class BatchSizeError(LSHError, ValueError):
    """The number of ids and signatures in a batch differ."""


class DecodeError(LSHError):
    """A stored row could not be decoded back into an Entry."""


class TransactionError(LSHError):
    """The connection already has an uncommitted transaction of the caller's."""
