from __future__ import annotations


class BundleMirrorError(Exception):
    """Base class for every failure raised while listing or mirroring a remote tree."""


class ListingError(BundleMirrorError):
    def __init__(self, address: str, message: str) -> None:
        super().__init__(f"Listing failed for {address}: {message}")
        self.address = address


class TransferError(BundleMirrorError):
    def __init__(self, address: str, cause: BaseException | str) -> None:
        super().__init__(f"Transfer failed for {address}: {cause}")
        self.address = address
        self.cause = cause


class MirrorError(BundleMirrorError):
    """A file exhausted its retry budget; the whole mirror run is aborted."""

    def __init__(self, remote_address: str, last_cause: BaseException, attempts: int) -> None:
        super().__init__(
            f"Giving up on {remote_address} after {attempts} attempt(s): {last_cause}"
        )
        self.remote_address = remote_address
        self.last_cause = last_cause
        self.attempts = attempts
