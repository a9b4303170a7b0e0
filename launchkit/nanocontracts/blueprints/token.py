from typing import NamedTuple

from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import InsufficientFunds, InvalidParameter
from launchkit.nanocontracts.types import Address, Amount, is_null, public, view


class TokenInfo(NamedTuple):
    """Token metadata and supply."""

    name: str
    symbol: str
    total_supply: int


class TokenErrors:
    """Common error messages"""

    MINT_TO_ZERO = "Token: mint to the zero address"
    TRANSFER_FROM_ZERO = "Token: transfer from the zero address"
    TRANSFER_TO_ZERO = "Token: transfer to the zero address"
    APPROVE_TO_ZERO = "Token: approve to the zero address"
    NEGATIVE_AMOUNT = "Token: amount is negative"
    EXCEEDS_BALANCE = "Token: transfer amount exceeds balance"
    INSUFFICIENT_ALLOWANCE = "Token: insufficient allowance"
    ALLOWANCE_BELOW_ZERO = "Token: decreased allowance below zero"


class Token(Blueprint):
    """Fungible ledger with a fixed supply minted at creation.

    Balances and allowances are keyed by address; a token is identified by
    the contract id of its ledger. There is no minting or burning after
    `initialize`.
    """

    token_name: str
    token_symbol: str
    supply: Amount

    balances: dict[Address, Amount]
    allowances: dict[Address, dict[Address, Amount]]

    @public
    def initialize(
        self,
        ctx: Context,
        name: str,
        symbol: str,
        total_supply: Amount,
        initial_holder: Address,
    ) -> None:
        """Create the ledger, crediting the whole supply to `initial_holder`."""
        if is_null(initial_holder):
            raise InvalidParameter(TokenErrors.MINT_TO_ZERO)
        self._check_amount(total_supply)

        self.token_name = name
        self.token_symbol = symbol
        self.supply = total_supply
        if total_supply > 0:
            self.balances[initial_holder] = total_supply
        self._emit_transfer(None, initial_holder, total_supply)

    @public
    def transfer(self, ctx: Context, to: Address, amount: Amount) -> None:
        self._transfer(ctx.caller_id, to, amount)

    @public
    def approve(self, ctx: Context, spender: Address, amount: Amount) -> None:
        self._approve(ctx.caller_id, spender, amount)

    @public
    def transfer_from(
        self, ctx: Context, owner: Address, to: Address, amount: Amount
    ) -> None:
        """Move `amount` from `owner` to `to`, spending the caller's allowance."""
        self._check_amount(amount)
        allowed = self.allowance(owner, ctx.caller_id)
        if allowed < amount:
            raise InsufficientFunds(TokenErrors.INSUFFICIENT_ALLOWANCE)
        self._transfer(owner, to, amount)
        self._approve(owner, ctx.caller_id, allowed - amount)

    @public
    def increase_allowance(self, ctx: Context, spender: Address, added: Amount) -> None:
        self._check_amount(added)
        self._approve(ctx.caller_id, spender, self.allowance(ctx.caller_id, spender) + added)

    @public
    def decrease_allowance(self, ctx: Context, spender: Address, subtracted: Amount) -> None:
        self._check_amount(subtracted)
        current = self.allowance(ctx.caller_id, spender)
        if current < subtracted:
            raise InvalidParameter(TokenErrors.ALLOWANCE_BELOW_ZERO)
        self._approve(ctx.caller_id, spender, current - subtracted)

    @view
    def name(self) -> str:
        return self.token_name

    @view
    def symbol(self) -> str:
        return self.token_symbol

    @view
    def total_supply(self) -> Amount:
        return self.supply

    @view
    def balance_of(self, address: Address) -> Amount:
        return self.balances.get(address, 0)

    @view
    def allowance(self, owner: Address, spender: Address) -> Amount:
        return self.allowances.get(owner, {}).get(spender, 0)

    @view
    def get_token_info(self) -> TokenInfo:
        return TokenInfo(
            name=self.token_name,
            symbol=self.token_symbol,
            total_supply=self.supply,
        )

    def _check_amount(self, amount: Amount) -> None:
        if amount < 0:
            raise InvalidParameter(TokenErrors.NEGATIVE_AMOUNT)

    def _transfer(self, from_: Address, to: Address, amount: Amount) -> None:
        if is_null(from_):
            raise InvalidParameter(TokenErrors.TRANSFER_FROM_ZERO)
        if is_null(to):
            raise InvalidParameter(TokenErrors.TRANSFER_TO_ZERO)
        self._check_amount(amount)

        from_balance = self.balances.get(from_, 0)
        if from_balance < amount:
            raise InsufficientFunds(TokenErrors.EXCEEDS_BALANCE)

        self._set_balance(from_, from_balance - amount)
        self._set_balance(to, self.balances.get(to, 0) + amount)
        self._emit_transfer(from_, to, amount)

    def _set_balance(self, address: Address, amount: Amount) -> None:
        if amount == 0:
            self.balances.pop(address, None)
        else:
            self.balances[address] = amount

    def _approve(self, owner: Address, spender: Address, amount: Amount) -> None:
        if is_null(spender):
            raise InvalidParameter(TokenErrors.APPROVE_TO_ZERO)
        self._check_amount(amount)

        owner_allowances = self.allowances.setdefault(owner, {})
        if amount == 0:
            owner_allowances.pop(spender, None)
            if not owner_allowances:
                del self.allowances[owner]
        else:
            owner_allowances[spender] = amount
        self.syscall.emit_event(
            "Approval", {"owner": owner, "spender": spender, "amount": amount}
        )

    def _emit_transfer(self, from_: Address | None, to: Address, amount: Amount) -> None:
        self.syscall.emit_event("Transfer", {"from": from_, "to": to, "amount": amount})
