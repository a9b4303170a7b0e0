import copy
import hashlib
import logging
from typing import Any, Callable, NamedTuple, Optional

from launchkit.conf.get_settings import get_global_settings
from launchkit.conf.settings import LaunchkitSettings
from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import (
    InsufficientFunds,
    InvalidParameter,
    NCBlueprintNotFound,
    NCCallDepthExceeded,
    NCContractAlreadyExists,
    NCContractNotFound,
    NCFail,
    NCMethodNotFound,
    NCReentrancyError,
    NCViewMethodError,
)
from launchkit.nanocontracts.types import (
    ALLOW_DEPOSIT_MARKER,
    PUBLIC_MARKER,
    VIEW_MARKER,
    Address,
    Amount,
    BlueprintId,
    ContractId,
    Timestamp,
)

logger = logging.getLogger(__name__)


class NCEvent(NamedTuple):
    """Event emitted by a contract."""

    contract_id: ContractId
    name: str
    data: dict[str, Any]


class _Frame(NamedTuple):
    contract_id: ContractId
    timestamp: Timestamp
    is_view: bool


class _Snapshot(NamedTuple):
    states: dict[ContractId, dict[str, Any]]
    contract_ids: set[ContractId]
    native_balances: dict[Address, Amount]
    events_count: int


class Clock:
    """Monotonic source of timestamps, in seconds."""

    def __init__(self, timestamp: Timestamp) -> None:
        self._now = timestamp

    def now(self) -> Timestamp:
        return self._now

    def set_time(self, timestamp: Timestamp) -> None:
        if timestamp < self._now:
            raise ValueError(f'cannot move the clock back from {self._now} to {timestamp}')
        self._now = timestamp

    def advance(self, seconds: int) -> Timestamp:
        self.set_time(self._now + seconds)
        return self._now


class _MethodCaller:
    def __init__(self, call: Callable[[str, tuple, dict], Any]) -> None:
        self._call = call

    def __getattr__(self, method_name: str) -> Callable[..., Any]:
        if method_name.startswith('_'):
            raise AttributeError(method_name)

        def method(*args: Any, **kwargs: Any) -> Any:
            return self._call(method_name, args, kwargs)
        return method


class ContractProxy:
    """Handle used by a contract to call another contract."""

    def __init__(self, runner: 'Runner', caller_id: ContractId, contract_id: ContractId) -> None:
        self._runner = runner
        self._caller_id = caller_id
        self.contract_id = contract_id

    def public(self, value: Amount = 0) -> _MethodCaller:
        def call(method_name: str, args: tuple, kwargs: dict) -> Any:
            ctx = Context(caller_id=self._caller_id, timestamp=self._runner.now(), value=value)
            return self._runner.call_public_method(self.contract_id, method_name, ctx, *args, **kwargs)
        return _MethodCaller(call)

    def view(self) -> _MethodCaller:
        def call(method_name: str, args: tuple, kwargs: dict) -> Any:
            return self._runner.call_view_method(self.contract_id, method_name, *args, **kwargs)
        return _MethodCaller(call)


class SyscallEnvironment:
    """Environment exposed to a contract as `self.syscall`."""

    def __init__(self, runner: 'Runner', contract_id: ContractId) -> None:
        self._runner = runner
        self._contract_id = contract_id

    @property
    def settings(self) -> LaunchkitSettings:
        return self._runner.settings

    def get_contract_id(self) -> ContractId:
        return self._contract_id

    def now(self) -> Timestamp:
        """Timestamp of the invocation being executed."""
        return self._runner.now()

    def create_contract(self, blueprint_id: BlueprintId, salt: bytes, *args: Any, value: Amount = 0) -> ContractId:
        contract_id = self._runner.derive_contract_id(self._contract_id, salt)
        ctx = Context(caller_id=self._contract_id, timestamp=self._runner.now(), value=value)
        self._runner.create_contract(contract_id, blueprint_id, ctx, *args)
        return contract_id

    def get_contract(self, contract_id: ContractId) -> ContractProxy:
        if not self._runner.has_contract(contract_id):
            raise NCContractNotFound(f'contract not found: {contract_id.hex()}')
        return ContractProxy(self._runner, self._contract_id, contract_id)

    def get_native_balance(self, address: Optional[Address] = None) -> Amount:
        if address is None:
            address = self._contract_id
        return self._runner.get_native_balance(address)

    def transfer_native(self, to: Address, amount: Amount) -> None:
        self._runner.move_native(self._contract_id, to, amount)

    def emit_event(self, name: str, data: dict[str, Any]) -> None:
        self._runner.events.append(NCEvent(self._contract_id, name, dict(data)))


class Runner:
    """Executes contract calls with all-or-nothing semantics.

    Every public call (including contract creation) snapshots the whole
    state first and restores it if the call raises, so a failed invocation
    has no effect at any nesting level. A public call into a contract that is
    already executing is rejected.
    """

    def __init__(self, settings: Optional[LaunchkitSettings] = None, clock: Optional[Clock] = None) -> None:
        self.settings = settings or get_global_settings()
        self.clock = clock or Clock(self.settings.GENESIS_TIMESTAMP)
        self.events: list[NCEvent] = []
        self._blueprints: dict[BlueprintId, type[Blueprint]] = {}
        self._contracts: dict[ContractId, Blueprint] = {}
        self._contract_blueprints: dict[ContractId, BlueprintId] = {}
        self._native_balances: dict[Address, Amount] = {}
        self._call_stack: list[_Frame] = []

    # Blueprints

    def register_blueprint_class(
        self,
        blueprint_class: type[Blueprint],
        blueprint_id: Optional[BlueprintId] = None,
    ) -> BlueprintId:
        if not issubclass(blueprint_class, Blueprint):
            raise TypeError(f'{blueprint_class!r} is not a blueprint')
        if blueprint_id is None:
            qualname = f'{blueprint_class.__module__}.{blueprint_class.__qualname__}'
            blueprint_id = BlueprintId(hashlib.sha256(qualname.encode('utf-8')).digest())
        self._blueprints[blueprint_id] = blueprint_class
        return blueprint_id

    def register_builtin_blueprints(self) -> dict[str, BlueprintId]:
        """Register every blueprint listed in `settings.BLUEPRINTS`. Returns name -> id."""
        from launchkit.nanocontracts.blueprints import _blueprints_mapper

        registered: dict[str, BlueprintId] = {}
        for raw_id, name in self.settings.BLUEPRINTS.items():
            blueprint_class = _blueprints_mapper.get(name)
            if blueprint_class is None:
                raise NCBlueprintNotFound(f'unknown built-in blueprint: {name}')
            registered[name] = self.register_blueprint_class(blueprint_class, BlueprintId(raw_id))
        return registered

    def get_blueprint_class(self, blueprint_id: BlueprintId) -> type[Blueprint]:
        blueprint_class = self._blueprints.get(blueprint_id)
        if blueprint_class is None:
            raise NCBlueprintNotFound(f'blueprint not found: {blueprint_id.hex()}')
        return blueprint_class

    # Contracts

    def derive_contract_id(self, creator_id: Address, salt: bytes) -> ContractId:
        digest = hashlib.sha256(b'nc-contract:' + creator_id + salt).digest()
        return ContractId(Address(digest[:self.settings.ADDRESS_LENGTH]))

    def has_contract(self, contract_id: ContractId) -> bool:
        return contract_id in self._contracts

    def get_contract(self, contract_id: ContractId) -> Blueprint:
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise NCContractNotFound(f'contract not found: {contract_id.hex()}')
        return contract

    def get_blueprint_id(self, contract_id: ContractId) -> BlueprintId:
        self.get_contract(contract_id)
        return self._contract_blueprints[contract_id]

    def create_contract(
        self,
        contract_id: ContractId,
        blueprint_id: BlueprintId,
        ctx: Context,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Create a contract and run its `initialize` method."""
        blueprint_class = self.get_blueprint_class(blueprint_id)
        if len(contract_id) != self.settings.ADDRESS_LENGTH:
            raise InvalidParameter(f'invalid contract id length: {len(contract_id)}')
        if contract_id in self._contracts:
            raise NCContractAlreadyExists(f'contract already exists: {contract_id.hex()}')

        snapshot = self._snapshot()
        try:
            contract = blueprint_class(SyscallEnvironment(self, contract_id))
            self._contracts[contract_id] = contract
            self._contract_blueprints[contract_id] = blueprint_id
            ret = self._execute_public(contract_id, 'initialize', ctx, args, kwargs)
        except BaseException:
            self._restore(snapshot)
            logger.debug('creation of %s (%s) rolled back', contract_id.hex(), blueprint_class.__name__)
            raise
        logger.info('contract %s created from %s', contract_id.hex(), blueprint_class.__name__)
        return ret

    def call_public_method(self, contract_id: ContractId, method_name: str, ctx: Context, *args: Any,
                           **kwargs: Any) -> Any:
        if method_name == 'initialize':
            raise NCMethodNotFound('initialize can only be called on contract creation')
        snapshot = self._snapshot()
        try:
            return self._execute_public(contract_id, method_name, ctx, args, kwargs)
        except BaseException:
            self._restore(snapshot)
            logger.debug('call %s.%s rolled back', contract_id.hex(), method_name)
            raise

    def call_view_method(self, contract_id: ContractId, method_name: str, *args: Any, **kwargs: Any) -> Any:
        contract = self.get_contract(contract_id)
        method = self._get_method(contract, method_name, VIEW_MARKER)
        self._check_depth()
        was_readonly = contract.__dict__['_nc_readonly']
        object.__setattr__(contract, '_nc_readonly', True)
        state = contract._nc_get_state()
        self._call_stack.append(_Frame(contract_id, self.now(), True))
        try:
            ret = method(*args, **kwargs)
        finally:
            self._call_stack.pop()
            object.__setattr__(contract, '_nc_readonly', was_readonly)
            # Field assignment is blocked above, writes into containers are caught here.
            changed = contract._nc_get_state() != state
            if changed:
                contract._nc_set_state(state)
        if changed:
            raise NCViewMethodError(f'{type(contract).__name__}.{method_name} changed contract state')
        return ret

    def now(self) -> Timestamp:
        """Timestamp of the running invocation, or the clock when idle."""
        if self._call_stack:
            return self._call_stack[-1].timestamp
        return self.clock.now()

    def _execute_public(self, contract_id: ContractId, method_name: str, ctx: Context, args: tuple,
                        kwargs: dict) -> Any:
        contract = self.get_contract(contract_id)
        method = self._get_method(contract, method_name, PUBLIC_MARKER)
        if self._call_stack and self._call_stack[-1].is_view:
            raise NCViewMethodError(f'cannot call public method {method_name} from a view')
        if ctx.value > 0 and not getattr(method, ALLOW_DEPOSIT_MARKER, False):
            raise NCFail(f'{method_name} does not accept deposits')
        if any(frame.contract_id == contract_id and not frame.is_view for frame in self._call_stack):
            raise NCReentrancyError(f'reentrant call to {contract_id.hex()}.{method_name}')
        self._check_depth()

        self._call_stack.append(_Frame(contract_id, ctx.timestamp, False))
        try:
            if ctx.value > 0:
                self.move_native(ctx.caller_id, contract_id, ctx.value)
            return method(ctx, *args, **kwargs)
        finally:
            self._call_stack.pop()

    def _check_depth(self) -> None:
        if len(self._call_stack) >= self.settings.MAX_CALL_DEPTH:
            raise NCCallDepthExceeded(f'call depth exceeded: {self.settings.MAX_CALL_DEPTH}')

    def _get_method(self, contract: Blueprint, method_name: str, marker: str) -> Callable[..., Any]:
        method = getattr(contract, method_name, None) if not method_name.startswith('_') else None
        if method is None or not getattr(method, marker, False):
            kind = 'public' if marker == PUBLIC_MARKER else 'view'
            raise NCMethodNotFound(f'{type(contract).__name__}.{method_name} is not a {kind} method')
        return method

    # Native currency

    def mint_native(self, address: Address, amount: Amount) -> None:
        """Credit native currency out of thin air. Used to fund accounts."""
        if amount < 0:
            raise InvalidParameter('amount cannot be negative')
        self._native_balances[address] = self._native_balances.get(address, 0) + amount

    def get_native_balance(self, address: Address) -> Amount:
        return self._native_balances.get(address, 0)

    def move_native(self, from_: Address, to: Address, amount: Amount) -> None:
        if amount < 0:
            raise InvalidParameter('amount cannot be negative')
        balance = self._native_balances.get(from_, 0)
        if balance < amount:
            raise InsufficientFunds(f'insufficient native balance: {balance} < {amount}')
        self._native_balances[from_] = balance - amount
        self._native_balances[to] = self._native_balances.get(to, 0) + amount

    # Atomicity

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            states={cid: contract._nc_get_state() for cid, contract in self._contracts.items()},
            contract_ids=set(self._contracts),
            native_balances=dict(self._native_balances),
            events_count=len(self.events),
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        for contract_id in set(self._contracts) - snapshot.contract_ids:
            del self._contracts[contract_id]
            del self._contract_blueprints[contract_id]
        for contract_id, state in snapshot.states.items():
            self._contracts[contract_id]._nc_set_state(copy.deepcopy(state))
        self._native_balances = snapshot.native_balances
        del self.events[snapshot.events_count:]
