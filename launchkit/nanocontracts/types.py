from typing import Any, Callable, NewType, Optional, TypeVar

Address = NewType('Address', bytes)
ContractId = NewType('ContractId', Address)
TokenUid = NewType('TokenUid', ContractId)
BlueprintId = NewType('BlueprintId', bytes)
CallerId = Address
Amount = int
Timestamp = int

NULL_ADDRESS = Address(b'\x00' * 20)

PUBLIC_MARKER = '__nc_public__'
VIEW_MARKER = '__nc_view__'
ALLOW_DEPOSIT_MARKER = '__nc_allow_deposit__'

T = TypeVar('T', bound=Callable[..., Any])


def public(fn: Optional[T] = None, *, allow_deposit: bool = False) -> Any:
    """Mark a blueprint method as a state-mutating entry point.

    Usable both as `@public` and `@public(allow_deposit=True)`. Only methods
    with `allow_deposit=True` accept calls carrying native value.
    """
    def decorator(f: T) -> T:
        setattr(f, PUBLIC_MARKER, True)
        setattr(f, ALLOW_DEPOSIT_MARKER, allow_deposit)
        return f

    if fn is not None:
        return decorator(fn)
    return decorator


def view(fn: T) -> T:
    """Mark a blueprint method as a read-only entry point."""
    setattr(fn, VIEW_MARKER, True)
    return fn


def is_null(address: Optional[bytes]) -> bool:
    """Whether `address` is missing or the all-zero address."""
    return address is None or not any(address)
