"""
Error types raised by the deployment and operation scripts
"""


class CouponOpsError(Exception):
    """Base class for every error raised by this toolkit"""


class PreconditionError(CouponOpsError):
    """A command cannot start: past epoch, missing registry entry or config"""


class NotFoundError(CouponOpsError):
    """An expected deployment record, market or event log is absent"""


class VerificationError(CouponOpsError):
    """The block explorer rejected a source verification request"""


class TransportError(CouponOpsError):
    """The RPC node could not be reached"""


class TransactionFailedError(TransportError):
    """A transaction was mined but reverted"""

    def __init__(self, tx_hash: str, message: str = "Transaction reverted"):
        super().__init__(f"{message}: {tx_hash}")
        self.tx_hash = tx_hash


class InvalidArgumentError(CouponOpsError, ValueError):
    """Malformed input to one of the derivation helpers"""
