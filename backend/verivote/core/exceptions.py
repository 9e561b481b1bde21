"""
Protocol error kinds.

Every error is terminal for the attempt that raised it; nothing in the
core retries.
"""


class ProtocolError(Exception):
    """Base class for ballot lifecycle failures."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AuthenticationFailure(ProtocolError):
    """Bad or missing challenge-response signature, or no usable session."""


class BallotRejected(ProtocolError):
    """Duplicate ciphertext, bad vote signature or invalid knowledge proof."""


class RegistrationDenied(ProtocolError):
    """The registration service refused to counter-sign a request."""


class StorageAborted(ProtocolError):
    """Stale acceptance, missing or mismatching receipt, or out-of-order commit."""


class VerificationDenied(ProtocolError):
    """Window closed, record superseded, signature/receipt/ciphertext mismatch
    or redemption count exceeded."""


class TallyFault(ProtocolError):
    """Zero or several final ballots for one voter. Never auto-resolved."""

    def __init__(self, reason: str, voter_id: str):
        super().__init__(reason)
        self.voter_id = voter_id


class IdentityAlreadyIssued(ProtocolError):
    """An identity already holds its single certificate."""


class UnknownIdentity(ProtocolError):
    """No credential is on file for the identity."""


class ElectionAlreadySetUp(ProtocolError):
    """The election key has already been published."""


class ElectionNotReady(ProtocolError):
    """The election is missing or not in the state the operation needs."""
