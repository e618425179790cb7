"""Exceptions raised by the lease store"""


class LeasekeeperError(Exception):
    """Base class for leasekeeper errors"""


class LeaseStoreError(LeasekeeperError):
    """
    The lock table could not be read or written

    Raised for infrastructure faults (connectivity loss, constraint
    violations, unexpected row state). Never used for lease outcomes such
    as a denied acquire.
    """

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause.__class__.__name__}")
