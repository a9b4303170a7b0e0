from dataclasses import dataclass

from launchkit.nanocontracts.types import Address, Amount, Timestamp


@dataclass(frozen=True, slots=True)
class Context:
    """Call information available to a public method.

    `caller_id` is the immediate caller: an account for calls coming from the
    outside world and the calling contract for nested calls. `value` is the
    native amount attached to the call.
    """

    caller_id: Address
    timestamp: Timestamp
    value: Amount = 0

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError('value cannot be negative')
        if self.timestamp < 0:
            raise ValueError('timestamp cannot be negative')
