class NCFail(Exception):
    """Raised when a contract call fails. Every effect of the invocation is rolled back."""

    @property
    def reason(self) -> str:
        return str(self.args[0]) if self.args else ''


class InvalidParameter(NCFail):
    """Zero address, zero amount, zero duration/rate/cap or malformed time window."""


class StateViolation(NCFail):
    """Operation invoked outside its valid state-machine window."""


class LimitExceeded(NCFail):
    """A cap, minimum, fee bound or supply-sufficiency check failed."""


class Unauthorized(NCFail):
    """Caller does not hold the role required by a privileged operation."""


class InsufficientFunds(NCFail):
    """Offered fee, balance or allowance is less than required."""


class NCContractNotFound(NCFail):
    pass


class NCContractAlreadyExists(NCFail):
    pass


class NCBlueprintNotFound(NCFail):
    pass


class NCMethodNotFound(NCFail):
    pass


class NCReentrancyError(NCFail):
    pass


class NCCallDepthExceeded(NCFail):
    pass


class NCViewMethodError(NCFail):
    """A view method tried to change contract state."""
