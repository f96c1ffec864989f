"""Exception types raised across the service."""


class DominionError(Exception):
    """Base class for all application errors."""


class WalletNotConnectedError(DominionError):
    """An operation needed a connected wallet and there was none."""


class ScanError(DominionError):
    """Token accounts could not be fetched for an owner."""


class TransactionError(DominionError):
    """
    Base class for on-chain transaction failures.

    ``user_message`` is what gets shown to the caller; ``str(exc)`` keeps the
    detail for logs.
    """

    user_message = "Transaction failed. Please try again."


class SimulationError(TransactionError):
    """Preflight simulation reported an error."""

    user_message = "Transaction would fail. Please try again."


class TransactionFailedError(TransactionError):
    """The confirmed transaction carries a non-empty error field."""


class ConfirmationTimeoutError(TransactionError):
    """The transaction was not confirmed before its blockhash expired."""


class SendError(TransactionError):
    """The node could not be reached or refused a submission step."""


class TransactionTooLargeError(TransactionError):
    """The serialized transaction exceeds the network packet size."""

    user_message = "Too many accounts selected for one transaction. Select fewer and try again."


class RpcError(DominionError):
    """The node answered a JSON-RPC call with an error object."""

    def __init__(self, method: str, error):
        self.method = method
        self.error = error
        super().__init__(f"{method} failed: {error}")


class LedgerWriteError(DominionError):
    """The leaderboard store rejected or failed a read or write."""


class ProfileError(DominionError):
    """Base class for profile and referral validation failures."""


class UsernameUnavailableError(ProfileError):
    """The requested username is taken or invalid."""


class ReferralCodeTakenError(ProfileError):
    """The requested referral code already belongs to another wallet."""


class InvalidProfileError(ProfileError):
    """Profile fields failed validation."""


class NoEligibleAccountsError(DominionError):
    """The selection left no account the action can process."""
