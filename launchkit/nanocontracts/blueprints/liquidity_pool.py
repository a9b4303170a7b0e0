import logging
import math
from typing import NamedTuple

from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.blueprints.token import Token
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import (
    InvalidParameter,
    LimitExceeded,
    NCFail,
    Unauthorized,
)
from launchkit.nanocontracts.types import (
    Address,
    Amount,
    BlueprintId,
    ContractId,
    TokenUid,
    is_null,
    public,
    view,
)

logger = logging.getLogger(__name__)

LP_TOKEN_NAME = "Launchkit LP"
LP_TOKEN_SYMBOL = "LKLP"


class LiquidityResult(NamedTuple):
    """Outcome of an add_liquidity call, amounts in the caller's token order."""

    liquidity_token: ContractId
    liquidity: int
    amount_a: int
    amount_b: int


class PairNotFound(NCFail):
    pass


class IdenticalTokens(InvalidParameter):
    pass


class InsufficientLiquidity(LimitExceeded):
    pass


class LiquidityPair(Token):
    """Share token of one pool pair. Only the pool may mint it.

    The pair contract also custodies both reserves.
    """

    pool: ContractId
    token_0: TokenUid
    token_1: TokenUid
    reserve_0: Amount
    reserve_1: Amount

    @public
    def initialize(self, ctx: Context, token_0: TokenUid, token_1: TokenUid) -> None:
        self.token_name = LP_TOKEN_NAME
        self.token_symbol = LP_TOKEN_SYMBOL
        self.supply = 0
        self.pool = ContractId(ctx.caller_id)
        self.token_0 = token_0
        self.token_1 = token_1
        self.reserve_0 = 0
        self.reserve_1 = 0

    @public
    def mint(
        self, ctx: Context, to: Address, liquidity: Amount, amount_0: Amount, amount_1: Amount
    ) -> None:
        """Credit `liquidity` shares to `to` for reserves already sent to this contract."""
        if ctx.caller_id != self.pool:
            raise Unauthorized("LiquidityPair: caller is not the pool")
        if is_null(to):
            raise InvalidParameter("LiquidityPair: mint to the zero address")

        self.supply += liquidity
        self.balances[to] = self.balances.get(to, 0) + liquidity
        self.reserve_0 += amount_0
        self.reserve_1 += amount_1
        self._emit_transfer(None, to, liquidity)

    @view
    def get_reserves(self) -> tuple[Amount, Amount]:
        return self.reserve_0, self.reserve_1

    @view
    def get_tokens(self) -> tuple[TokenUid, TokenUid]:
        return self.token_0, self.token_1


class LiquidityPool(Blueprint):
    """Constant-product liquidity provisioning, one pair contract per token pair.

    Only adding liquidity is supported: it is what a project needs to seed a
    market for its token.
    """

    pair_blueprint_id: BlueprintId
    pairs: dict[str, ContractId]
    all_pairs: list[ContractId]

    @public
    def initialize(self, ctx: Context, pair_blueprint_id: BlueprintId) -> None:
        self.pair_blueprint_id = pair_blueprint_id

    @public
    def add_liquidity(
        self,
        ctx: Context,
        token_a: TokenUid,
        amount_a: Amount,
        token_b: TokenUid,
        amount_b: Amount,
        to: Address,
    ) -> LiquidityResult:
        """Add liquidity to a pair, creating it on first use.

        Args:
            ctx: The transaction context
            token_a: First token of the pair
            amount_a: Maximum amount of token_a to supply
            token_b: Second token of the pair
            amount_b: Maximum amount of token_b to supply
            to: Receiver of the liquidity shares

        Returns:
            The pair's share token, the minted shares and the amounts used

        Raises:
            IdenticalTokens: If both tokens are the same
            InvalidParameter: If an amount is 0 or `to` is the zero address
            InsufficientLiquidity: If the deposit is too small to mint shares
        """
        if token_a == token_b:
            raise IdenticalTokens("LiquidityPool: identical tokens")
        if is_null(token_a) or is_null(token_b):
            raise InvalidParameter("LiquidityPool: token is the zero address")
        if amount_a <= 0 or amount_b <= 0:
            raise InvalidParameter("LiquidityPool: amount is 0")
        if is_null(to):
            raise InvalidParameter("LiquidityPool: to is the zero address")

        swapped = token_a > token_b
        if swapped:
            token_a, token_b = token_b, token_a
            amount_a, amount_b = amount_b, amount_a

        key = self._get_pair_key(token_a, token_b)
        pair_id = self.pairs.get(key)
        if pair_id is None:
            pair_id = self._create_pair(key, token_a, token_b)

        pair = self.syscall.get_contract(pair_id)
        reserve_a, reserve_b = pair.view().get_reserves()
        supply = pair.view().total_supply()
        if supply == 0:
            used_a, used_b = amount_a, amount_b
            liquidity = math.isqrt(used_a * used_b)
        else:
            used_a, used_b = self._optimal_amounts(amount_a, amount_b, reserve_a, reserve_b)
            liquidity = min(used_a * supply // reserve_a, used_b * supply // reserve_b)
        if liquidity <= 0:
            raise InsufficientLiquidity("LiquidityPool: insufficient liquidity minted")

        self.syscall.get_contract(token_a).public().transfer_from(ctx.caller_id, pair_id, used_a)
        self.syscall.get_contract(token_b).public().transfer_from(ctx.caller_id, pair_id, used_b)
        pair.public().mint(to, liquidity, used_a, used_b)

        self.syscall.emit_event(
            "LiquidityAdded",
            {"pair": pair_id, "to": to, "liquidity": liquidity, "amount_0": used_a, "amount_1": used_b},
        )
        if swapped:
            used_a, used_b = used_b, used_a
        return LiquidityResult(pair_id, liquidity, used_a, used_b)

    @view
    def quote(self, amount_a: Amount, reserve_a: Amount, reserve_b: Amount) -> Amount:
        """Return amount_b such that amount_b/amount_a = reserve_b/reserve_a

        Args:
            amount_a: The amount of token A
            reserve_a: The reserve of token A
            reserve_b: The reserve of token B

        Returns:
            The equivalent amount of token B
        """
        if amount_a <= 0:
            raise InvalidParameter("LiquidityPool: amount is 0")
        if reserve_a <= 0 or reserve_b <= 0:
            raise InsufficientLiquidity("LiquidityPool: insufficient liquidity")
        return (amount_a * reserve_b) // reserve_a

    @view
    def get_pair(self, token_a: TokenUid, token_b: TokenUid) -> ContractId:
        key = self._get_pair_key(token_a, token_b)
        pair_id = self.pairs.get(key)
        if pair_id is None:
            raise PairNotFound(f"LiquidityPool: pair not found: {key}")
        return pair_id

    @view
    def get_reserves(self, token_a: TokenUid, token_b: TokenUid) -> tuple[Amount, Amount]:
        """Reserves of a pair, in the order of the arguments."""
        pair_id = self.get_pair(token_a, token_b)
        reserve_0, reserve_1 = self.syscall.get_contract(pair_id).view().get_reserves()
        if token_a > token_b:
            return reserve_1, reserve_0
        return reserve_0, reserve_1

    @view
    def get_all_pairs(self) -> list[ContractId]:
        return list(self.all_pairs)

    def _get_pair_key(self, token_a: TokenUid, token_b: TokenUid) -> str:
        """Create a standardized pair key, independent of argument order."""
        if token_a > token_b:
            token_a, token_b = token_b, token_a
        return f"{token_a.hex()}/{token_b.hex()}"

    def _create_pair(self, key: str, token_0: TokenUid, token_1: TokenUid) -> ContractId:
        pair_id = self.syscall.create_contract(
            self.pair_blueprint_id, token_0 + token_1, token_0, token_1
        )
        self.pairs[key] = pair_id
        self.all_pairs.append(pair_id)
        logger.info("liquidity pair %s created for %s", pair_id.hex(), key)
        self.syscall.emit_event("PairCreated", {"pair": pair_id, "token_0": token_0, "token_1": token_1})
        return pair_id

    def _optimal_amounts(
        self, amount_a: Amount, amount_b: Amount, reserve_a: Amount, reserve_b: Amount
    ) -> tuple[Amount, Amount]:
        amount_b_optimal = self.quote(amount_a, reserve_a, reserve_b)
        if amount_b_optimal <= amount_b:
            return amount_a, amount_b_optimal
        amount_a_optimal = self.quote(amount_b, reserve_b, reserve_a)
        return amount_a_optimal, amount_b
