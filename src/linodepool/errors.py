"""
Exception taxonomy for the Linode provisioning core.

Everything raised on purpose by this package derives from LinodeError,
so callers can catch one type. FatalError marks conditions that retrying
cannot fix (an account with no machines at all); everything else may
succeed on a later attempt.
"""

from __future__ import annotations

from typing import Optional


def lower_first(message: str) -> str:
    """Lower-case the first letter of a provider message.

    Provider messages start with a capital letter; they are embedded
    mid-sentence in our own errors, so the first letter is folded.
    """
    if not message:
        return message
    return message[0].lower() + message[1:]


class LinodeError(Exception):
    """Base class for all provisioning errors."""


# ---------------------------------------------------------------------------
# Protocol level
# ---------------------------------------------------------------------------


class EncodeError(LinodeError):
    """A request parameter has a type that cannot be sent."""


class TransportError(LinodeError):
    """The request could not be performed (connection, timeout, HTTP status)."""


class ResponseReadError(LinodeError):
    """The response body could not be read."""


class DecodeError(LinodeError):
    """The response body is not JSON or has an unexpected shape."""


class ProviderError(LinodeError):
    """The provider answered with a non-empty error list.

    Args:
        code: Provider error code of the first reported error.
        message: Provider message, with its first letter lower-cased.
    """

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = lower_first(message)
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CatalogError(LinodeError):
    """The distribution or kernel catalog could not be built or queried."""


class KernelNotFoundError(CatalogError):
    """The kernel list has no 'Latest 32 bit' or 'Latest 64 bit' entry."""


class SystemNotFoundError(CatalogError):
    """No distribution matches the requested system."""


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class ProvisioningError(LinodeError):
    """A provisioning step (address, disks, config) failed."""


class JobError(LinodeError):
    """A provider job could not be tracked to completion."""


class JobFailedError(JobError):
    """The provider reported the job as finished but unsuccessful."""


class JobTimeoutError(JobError):
    """The job did not finish before the deadline."""


class NoServerAvailableError(LinodeError):
    """Machines exist but none is powered off right now."""


class ReuseError(LinodeError):
    """Serialized reuse data could not be loaded."""


class FatalError(LinodeError):
    """An error that callers must not retry."""


class NoServersError(FatalError):
    """The account has no machines at all."""


def first_error(*errors: Optional[BaseException]) -> Optional[BaseException]:
    """Return the first non-None error, or None."""
    for err in errors:
        if err is not None:
            return err
    return None
