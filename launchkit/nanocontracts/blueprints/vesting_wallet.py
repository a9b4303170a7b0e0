from typing import NamedTuple

from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import (
    InvalidParameter,
    StateViolation,
    Unauthorized,
)
from launchkit.nanocontracts.types import (
    Address,
    Amount,
    Timestamp,
    TokenUid,
    is_null,
    public,
    view,
)


class Releasable(NamedTuple):
    """Amount currently due and whether the schedule is over."""

    amount: int
    finished: bool


class ScheduleInfo(NamedTuple):
    """Vesting schedule of one token."""

    start: int
    duration: int
    released: int
    total_deposited: int
    releasable: int
    finished: bool


class VestingErrors:
    """Common error messages"""

    ZERO_BENEFICIARY = "VestingWallet: beneficiary is the zero address"
    NOT_BENEFICIARY = "VestingWallet: caller not beneficiary"
    ZERO_AMOUNT = "VestingWallet: amount is 0"
    ZERO_DURATION = "VestingWallet: duration is 0"
    NEGATIVE_START = "VestingWallet: start is negative"
    NOTHING_DUE = "VestingWallet: no tokens due"


class VestingWallet(Blueprint):
    """Time-locked custody of ledger tokens for a single beneficiary.

    Each token has its own linear schedule, fixed by the first deposit of
    that token. The vested amount is computed from the wallet's live ledger
    balance plus what was already released, so tokens sent to the wallet
    directly also vest on the running schedule.

    State Variables:
        beneficiary_address: Receiver of released tokens
        schedule_start: Start timestamp per token
        schedule_duration: Duration in seconds per token
        released_amount: Tokens already released per token
        deposited_amount: Tokens received through `deposit` per token
    """

    beneficiary_address: Address

    schedule_start: dict[TokenUid, Timestamp]
    schedule_duration: dict[TokenUid, int]
    released_amount: dict[TokenUid, Amount]
    deposited_amount: dict[TokenUid, Amount]

    @public
    def initialize(self, ctx: Context, beneficiary: Address) -> None:
        if is_null(beneficiary):
            raise InvalidParameter(VestingErrors.ZERO_BENEFICIARY)
        self.beneficiary_address = beneficiary

    @public
    def deposit(
        self,
        ctx: Context,
        token: TokenUid,
        amount: Amount,
        start_in: int,
        duration: int,
    ) -> None:
        """Pull `amount` of `token` from the caller, starting a schedule if there is none.

        `start_in` and `duration` only apply to the first deposit of a token;
        later deposits join the running schedule.
        """
        self._deposit(ctx, token, amount, start_in, duration)

    @public
    def release(self, ctx: Context, token: TokenUid) -> Amount:
        """Send every vested and unreleased token to the beneficiary."""
        amount, finished = self.releasable(token)
        if amount <= 0:
            raise StateViolation(VestingErrors.NOTHING_DUE)

        if finished:
            self._clear_schedule(token)
        else:
            self.released_amount[token] = self.released_amount.get(token, 0) + amount

        beneficiary = self.beneficiary_address
        self.syscall.get_contract(token).public().transfer(beneficiary, amount)
        self.syscall.emit_event(
            "Released",
            {"token": token, "beneficiary": beneficiary, "amount": amount, "finished": finished},
        )
        return amount

    @public
    def set_beneficiary(self, ctx: Context, new_beneficiary: Address) -> None:
        if ctx.caller_id != self.beneficiary_address:
            raise Unauthorized(VestingErrors.NOT_BENEFICIARY)
        if is_null(new_beneficiary):
            raise InvalidParameter(VestingErrors.ZERO_BENEFICIARY)
        previous = self.beneficiary_address
        self.beneficiary_address = new_beneficiary
        self.syscall.emit_event(
            "BeneficiaryChanged", {"previous": previous, "beneficiary": new_beneficiary}
        )

    @view
    def releasable(self, token: TokenUid) -> Releasable:
        start = self.schedule_start.get(token)
        now = self.syscall.now()
        if start is None or now < start:
            return Releasable(0, False)

        released = self.released_amount.get(token, 0)
        balance = self.syscall.get_contract(token).view().balance_of(self.syscall.get_contract_id())
        allocation = balance + released
        duration = self.schedule_duration[token]
        if now >= start + duration:
            return Releasable(allocation - released, True)
        return Releasable(allocation * (now - start) // duration - released, False)

    @view
    def beneficiary(self) -> Address:
        return self.beneficiary_address

    @view
    def start(self, token: TokenUid) -> Timestamp:
        return self.schedule_start.get(token, 0)

    @view
    def duration(self, token: TokenUid) -> int:
        return self.schedule_duration.get(token, 0)

    @view
    def released(self, token: TokenUid) -> Amount:
        return self.released_amount.get(token, 0)

    @view
    def total_deposited(self, token: TokenUid) -> Amount:
        return self.deposited_amount.get(token, 0)

    @view
    def get_schedule_info(self, token: TokenUid) -> ScheduleInfo:
        amount, finished = self.releasable(token)
        return ScheduleInfo(
            start=self.start(token),
            duration=self.duration(token),
            released=self.released(token),
            total_deposited=self.total_deposited(token),
            releasable=amount,
            finished=finished,
        )

    def _deposit(
        self, ctx: Context, token: TokenUid, amount: Amount, start_in: int, duration: int
    ) -> None:
        if amount <= 0:
            raise InvalidParameter(VestingErrors.ZERO_AMOUNT)

        if token not in self.schedule_start:
            if duration <= 0:
                raise InvalidParameter(VestingErrors.ZERO_DURATION)
            if start_in < 0:
                raise InvalidParameter(VestingErrors.NEGATIVE_START)
            self.schedule_start[token] = ctx.timestamp + start_in
            self.schedule_duration[token] = duration

        self.deposited_amount[token] = self.deposited_amount.get(token, 0) + amount
        self.syscall.get_contract(token).public().transfer_from(
            ctx.caller_id, self.syscall.get_contract_id(), amount
        )
        self.syscall.emit_event(
            "Deposited",
            {
                "token": token,
                "from": ctx.caller_id,
                "amount": amount,
                "start": self.schedule_start[token],
                "duration": self.schedule_duration[token],
            },
        )

    def _clear_schedule(self, token: TokenUid) -> None:
        for field in (
            self.schedule_start,
            self.schedule_duration,
            self.released_amount,
            self.deposited_amount,
        ):
            field.pop(token, None)


class FixedVestingWallet(VestingWallet):
    """Vesting wallet whose schedule parameters are fixed at creation.

    Used to lock platform fees: every deposit of a token without a running
    schedule starts one with the wallet-wide `start_in` and `duration`.
    """

    fixed_start_in: int
    fixed_duration: int

    @public
    def initialize(
        self, ctx: Context, beneficiary: Address, start_in: int, duration: int
    ) -> None:
        super().initialize(ctx, beneficiary)
        if duration <= 0:
            raise InvalidParameter(VestingErrors.ZERO_DURATION)
        if start_in < 0:
            raise InvalidParameter(VestingErrors.NEGATIVE_START)
        self.fixed_start_in = start_in
        self.fixed_duration = duration

    @public
    def deposit(self, ctx: Context, token: TokenUid, amount: Amount) -> None:
        self._deposit(ctx, token, amount, self.fixed_start_in, self.fixed_duration)

    @view
    def get_fixed_schedule(self) -> tuple[int, int]:
        return self.fixed_start_in, self.fixed_duration
