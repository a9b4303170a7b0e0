from typing import NamedTuple

from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import (
    InsufficientFunds,
    InvalidParameter,
    LimitExceeded,
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


class CrowdsaleSaleInfo(NamedTuple):
    """General sale information."""

    token: bytes
    pair_token: bytes
    owner: bytes
    finalizer: bytes
    rate: int
    cap: int
    individual_cap: int
    min_purchase_amount: int
    goal: int
    opening_time: int
    closing_time: int
    tokens_sold: int
    pair_token_raised: int
    contributors: int
    finalized: bool
    state: int


class SaleState:
    """Derived states of the Crowdsale"""

    PENDING = 0  # Before opening time
    OPEN = 1  # Accepting purchases
    GOAL_REACHED = 2  # Closed with tokens_sold >= goal
    GOAL_NOT_REACHED = 3  # Closed below goal
    FINALIZED = 4


class CrowdsaleErrors:
    """Common error messages"""

    ZERO_TOKEN = "Crowdsale: token address is the zero address"
    ZERO_PAIR_TOKEN = "Crowdsale: pair token address is the zero address"
    ZERO_OWNER = "Crowdsale: owner is the zero address"
    ZERO_FINALIZER = "Crowdsale: finalizer is the zero address"
    ZERO_RATE = "Crowdsale: rate is 0"
    ZERO_CAP = "Crowdsale: cap is 0"
    GOAL_ABOVE_CAP = "Crowdsale: goal is greater than cap"
    RATE_ABOVE_CAP = "Crowdsale: rate is greater than cap"
    NEGATIVE_LIMIT = "Crowdsale: purchase limits cannot be negative"
    OPENING_IN_PAST = "Crowdsale: opening time is before current time"
    INVALID_TIME_RANGE = "Crowdsale: opening time is not before closing time"
    NOT_OPEN = "Crowdsale: not open"
    ZERO_BENEFICIARY = "Crowdsale: beneficiary is the zero address"
    ZERO_AMOUNT = "Crowdsale: amount is 0"
    BELOW_MIN = "Crowdsale: amount is less than min purchase amount"
    CAP_EXCEEDED = "Crowdsale: cap exceeded"
    INDIVIDUAL_CAP_EXCEEDED = "Crowdsale: beneficiary's cap exceeded"
    INSUFFICIENT_BALANCE = "Crowdsale: insufficient balance"
    NOT_FINALIZER = "Crowdsale: caller is not the finalizer"
    ALREADY_FINALIZED = "Crowdsale: already finalized"
    NOT_CLOSED = "Crowdsale: not closed"
    GOAL_NOT_REACHED = "Crowdsale: goal not reached"
    FINALIZE_EXPIRED = "Crowdsale: time to finalize has expired"
    NOT_FINALIZED = "Crowdsale: not finalized"
    NOTHING_DUE = "Crowdsale: beneficiary is not due any tokens"
    REFUNDS_NOT_DUE = "Crowdsale: refunds not due"
    NOT_OWNER = "Crowdsale: caller is not the owner"
    NOT_EXPIRED = "Crowdsale: not expired"
    NOTHING_TO_WITHDRAW = "Crowdsale: no tokens to withdraw"


class Crowdsale(Blueprint):
    """Fixed-rate sale of a ledger token against a pair token.

    The sale holds the tokens it sells. Buyers pay in pair units through an
    allowance and are credited `amount * rate` tokens, claimable after the
    finalizer closes a successful sale. A sale that misses its goal, or is
    never finalized within the finalization window, refunds the pair token
    instead and lets the owner sweep the unsold tokens.
    """

    # Sale configuration
    token: TokenUid
    pair_token: TokenUid
    owner: Address
    finalizer: Address
    rate: Amount  # Tokens per pair unit
    cap: Amount  # In tokens
    individual_cap: Amount  # In tokens, 0 = no limit
    min_purchase_amount: Amount  # In pair units, 0 = no minimum
    goal: Amount  # In tokens
    opening_time: Timestamp
    closing_time: Timestamp

    # Sale state
    tokens_sold: Amount
    contributors: int
    finalized: bool

    # Participant tracking
    balances: dict[Address, Amount]  # Tokens owed
    contributions: dict[Address, Amount]  # Pair units paid

    @public
    def initialize(
        self,
        ctx: Context,
        token: TokenUid,
        pair_token: TokenUid,
        owner: Address,
        finalizer: Address,
        rate: Amount,
        cap: Amount,
        individual_cap: Amount,
        min_purchase_amount: Amount,
        goal: Amount,
        opening_time: Timestamp,
        closing_time: Timestamp,
    ) -> None:
        """Initialize the sale contract with configuration parameters."""
        if is_null(token):
            raise InvalidParameter(CrowdsaleErrors.ZERO_TOKEN)
        if is_null(pair_token):
            raise InvalidParameter(CrowdsaleErrors.ZERO_PAIR_TOKEN)
        if is_null(owner):
            raise InvalidParameter(CrowdsaleErrors.ZERO_OWNER)
        if is_null(finalizer):
            raise InvalidParameter(CrowdsaleErrors.ZERO_FINALIZER)
        if rate <= 0:
            raise InvalidParameter(CrowdsaleErrors.ZERO_RATE)
        if cap <= 0:
            raise InvalidParameter(CrowdsaleErrors.ZERO_CAP)
        if goal > cap:
            raise InvalidParameter(CrowdsaleErrors.GOAL_ABOVE_CAP)
        if rate > cap:
            raise InvalidParameter(CrowdsaleErrors.RATE_ABOVE_CAP)
        if goal < 0 or individual_cap < 0 or min_purchase_amount < 0:
            raise InvalidParameter(CrowdsaleErrors.NEGATIVE_LIMIT)
        if opening_time < ctx.timestamp:
            raise InvalidParameter(CrowdsaleErrors.OPENING_IN_PAST)
        if closing_time <= opening_time:
            raise InvalidParameter(CrowdsaleErrors.INVALID_TIME_RANGE)

        self.token = token
        self.pair_token = pair_token
        self.owner = owner
        self.finalizer = finalizer
        self.rate = rate
        self.cap = cap
        self.individual_cap = individual_cap
        self.min_purchase_amount = min_purchase_amount
        self.goal = goal
        self.opening_time = opening_time
        self.closing_time = closing_time

        self.tokens_sold = 0
        self.contributors = 0
        self.finalized = False

    @public
    def buy(self, ctx: Context, beneficiary: Address, amount: Amount) -> Amount:
        """Buy `amount * rate` tokens for `beneficiary`, paying `amount` pair units.

        Returns the number of tokens credited.
        """
        if not self.is_open():
            raise StateViolation(CrowdsaleErrors.NOT_OPEN)
        if is_null(beneficiary):
            raise InvalidParameter(CrowdsaleErrors.ZERO_BENEFICIARY)
        if amount <= 0:
            raise InvalidParameter(CrowdsaleErrors.ZERO_AMOUNT)
        if amount < self.min_purchase_amount:
            raise LimitExceeded(CrowdsaleErrors.BELOW_MIN)

        tokens = amount * self.rate
        if self.tokens_sold + tokens > self.cap:
            raise LimitExceeded(CrowdsaleErrors.CAP_EXCEEDED)
        current = self.balances.get(beneficiary, 0)
        if self.individual_cap > 0 and current + tokens > self.individual_cap:
            raise LimitExceeded(CrowdsaleErrors.INDIVIDUAL_CAP_EXCEEDED)
        if self._token_balance() < self.tokens_sold + tokens:
            raise InsufficientFunds(CrowdsaleErrors.INSUFFICIENT_BALANCE)

        if beneficiary not in self.balances:
            self.contributors += 1
        self.balances[beneficiary] = current + tokens
        self.contributions[beneficiary] = self.contributions.get(beneficiary, 0) + amount
        self.tokens_sold += tokens

        self.syscall.get_contract(self.pair_token).public().transfer_from(
            ctx.caller_id, self.syscall.get_contract_id(), amount
        )
        self.syscall.emit_event(
            "TokensPurchased",
            {
                "purchaser": ctx.caller_id,
                "beneficiary": beneficiary,
                "value": amount,
                "amount": tokens,
            },
        )
        return tokens

    @public
    def finalize(self, ctx: Context) -> None:
        """Close a successful sale, handing unsold tokens and raised funds to the finalizer."""
        if ctx.caller_id != self.finalizer:
            raise Unauthorized(CrowdsaleErrors.NOT_FINALIZER)
        if self.finalized:
            raise StateViolation(CrowdsaleErrors.ALREADY_FINALIZED)
        if not self.has_closed():
            raise StateViolation(CrowdsaleErrors.NOT_CLOSED)
        if not self.goal_reached():
            raise StateViolation(CrowdsaleErrors.GOAL_NOT_REACHED)
        if ctx.timestamp > self._finalization_deadline():
            raise StateViolation(CrowdsaleErrors.FINALIZE_EXPIRED)

        self.finalized = True

        this = self.syscall.get_contract_id()
        unsold = self._token_balance() - self.tokens_sold
        if unsold > 0:
            self.syscall.get_contract(self.token).public().transfer(self.finalizer, unsold)

        pair = self.syscall.get_contract(self.pair_token)
        raised = pair.view().balance_of(this)
        pair.public().approve(self.finalizer, raised)

        self.syscall.emit_event(
            "Finalized",
            {"finalizer": self.finalizer, "unsold": unsold, "pair_token_raised": raised},
        )

    @public
    def withdraw_tokens(self, ctx: Context, beneficiary: Address) -> Amount:
        """Pay out the tokens bought for `beneficiary` after finalization."""
        if not self.finalized:
            raise StateViolation(CrowdsaleErrors.NOT_FINALIZED)
        amount = self.balances.get(beneficiary, 0)
        if amount == 0:
            raise StateViolation(CrowdsaleErrors.NOTHING_DUE)

        self.balances[beneficiary] = 0
        self.syscall.get_contract(self.token).public().transfer(beneficiary, amount)
        self.syscall.emit_event(
            "TokensWithdrawn", {"beneficiary": beneficiary, "amount": amount}
        )
        return amount

    @public
    def claim_refund(self, ctx: Context, beneficiary: Address) -> Amount:
        """Return the pair units paid for `beneficiary` when the sale failed or expired."""
        if not self._refunds_due():
            raise StateViolation(CrowdsaleErrors.REFUNDS_NOT_DUE)
        contribution = self.contributions.get(beneficiary, 0)
        if contribution == 0:
            raise StateViolation(CrowdsaleErrors.NOTHING_DUE)

        self.balances[beneficiary] = 0
        self.contributions[beneficiary] = 0
        self.syscall.get_contract(self.pair_token).public().transfer(beneficiary, contribution)
        self.syscall.emit_event(
            "Refunded", {"beneficiary": beneficiary, "amount": contribution}
        )
        return contribution

    @public
    def withdraw_expired_tokens(self, ctx: Context) -> Amount:
        """Sweep the whole token balance to the owner once the sale expired."""
        if ctx.caller_id != self.owner:
            raise Unauthorized(CrowdsaleErrors.NOT_OWNER)
        if not self.is_expired():
            raise StateViolation(CrowdsaleErrors.NOT_EXPIRED)
        amount = self._token_balance()
        if amount == 0:
            raise StateViolation(CrowdsaleErrors.NOTHING_TO_WITHDRAW)

        self.syscall.get_contract(self.token).public().transfer(self.owner, amount)
        self.syscall.emit_event(
            "ExpiredTokensWithdrawn", {"owner": self.owner, "amount": amount}
        )
        return amount

    @view
    def is_open(self) -> bool:
        now = self.syscall.now()
        return (
            self.opening_time <= now <= self.closing_time
            and self.tokens_sold < self.cap
        )

    @view
    def has_closed(self) -> bool:
        return self.syscall.now() > self.closing_time or self.tokens_sold >= self.cap

    @view
    def goal_reached(self) -> bool:
        return self.tokens_sold >= self.goal

    @view
    def is_expired(self) -> bool:
        return self._refunds_due()

    @view
    def balance_of(self, beneficiary: Address) -> Amount:
        return self.balances.get(beneficiary, 0)

    @view
    def contribution_of(self, beneficiary: Address) -> Amount:
        return self.contributions.get(beneficiary, 0)

    @view
    def pair_token_raised(self) -> Amount:
        return self.syscall.get_contract(self.pair_token).view().balance_of(
            self.syscall.get_contract_id()
        )

    @view
    def get_state(self) -> int:
        if self.finalized:
            return SaleState.FINALIZED
        if self.has_closed():
            if self.goal_reached():
                return SaleState.GOAL_REACHED
            return SaleState.GOAL_NOT_REACHED
        if self.is_open():
            return SaleState.OPEN
        return SaleState.PENDING

    @view
    def get_sale_info(self) -> CrowdsaleSaleInfo:
        return CrowdsaleSaleInfo(
            token=self.token,
            pair_token=self.pair_token,
            owner=self.owner,
            finalizer=self.finalizer,
            rate=self.rate,
            cap=self.cap,
            individual_cap=self.individual_cap,
            min_purchase_amount=self.min_purchase_amount,
            goal=self.goal,
            opening_time=self.opening_time,
            closing_time=self.closing_time,
            tokens_sold=self.tokens_sold,
            pair_token_raised=self.pair_token_raised(),
            contributors=self.contributors,
            finalized=self.finalized,
            state=self.get_state(),
        )

    def _refunds_due(self) -> bool:
        if self.finalized:
            return False
        failed = self.has_closed() and not self.goal_reached()
        return failed or self.syscall.now() > self._finalization_deadline()

    def _finalization_deadline(self) -> Timestamp:
        return self.closing_time + self.syscall.settings.CROWDSALE_FINALIZATION_WINDOW

    def _token_balance(self) -> Amount:
        return self.syscall.get_contract(self.token).view().balance_of(
            self.syscall.get_contract_id()
        )
