import logging
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
    BlueprintId,
    ContractId,
    TokenUid,
    is_null,
    public,
    view,
)

logger = logging.getLogger(__name__)

MAX_LIQUIDITY_PERCENTAGE = 100


class ProjectStatus:
    """Lifecycle of a project record"""

    ACTIVE = 1  # Record present, crowdsale running or awaiting finalization
    FINALIZED = 2  # Record retired, assets distributed


class ProjectInput(NamedTuple):
    """Parameters of a new project."""

    token_name: str
    token_symbol: str
    token_total_supply: int
    token_lock_start_in: int
    token_lock_duration: int
    crowdsale_rate: int
    crowdsale_cap: int
    crowdsale_individual_cap: int
    crowdsale_min_purchase_amount: int
    crowdsale_goal: int
    crowdsale_opening_time: int
    crowdsale_closing_time: int
    liquidity_rate: int
    liquidity_lock_start_in: int
    liquidity_lock_duration: int
    liquidity_percentage: int


class Project(NamedTuple):
    """Record kept for an active project until it is finalized."""

    creator: bytes
    token: bytes
    crowdsale: bytes
    vesting_wallet: bytes
    pair_token: bytes
    crowdsale_rate: int
    crowdsale_cap: int
    liquidity_rate: int
    liquidity_percentage: int
    max_liquidity_amount: int
    max_liquidity_token_amount: int
    liquidity_lock_start_in: int
    liquidity_lock_duration: int
    created_at: int


class TokenDistribution(NamedTuple):
    """How a project's token supply is split at creation."""

    token_fee_amount: int
    crowdsale_amount: int
    max_liquidity_amount: int
    max_liquidity_token_amount: int
    required_token_amount: int
    vested_amount: int


class ProjectCreated(NamedTuple):
    creator: bytes
    token: bytes
    crowdsale: bytes
    vesting_wallet: bytes


class ProjectFinalized(NamedTuple):
    token: bytes
    pair_token_amount: int
    liquidity_token: bytes
    liquidity_amount: int
    remaining_token_amount: int
    remaining_pair_token_amount: int


class ProjectFactoryErrors:
    """Common error messages"""

    NOT_OWNER = "Ownable: caller is not the owner"
    ZERO_OWNER = "Ownable: new owner is the zero address"
    TOKEN_FEE_TOO_HIGH = "ProjectFactory: token fee greater than 10000"
    NEGATIVE_CREATION_FEE = "ProjectFactory: creation fee is negative"
    ZERO_WALLET = "ProjectFactory: wallet is the zero address"
    ZERO_VESTING = "ProjectFactory: vesting is the zero address"
    ZERO_ROUTER = "ProjectFactory: router is the zero address"
    ZERO_PAIR_TOKEN = "ProjectFactory: pair token is the zero address"
    INSUFFICIENT_FEE = "ProjectFactory: insufficient funds sent"
    ZERO_CROWDSALE_RATE = "ProjectFactory: crowdsaleRate is 0"
    ZERO_LIQUIDITY_RATE = "ProjectFactory: liquidityRate is 0"
    LIQUIDITY_PERCENTAGE = "ProjectFactory: liquidityPercentage > 100"
    ZERO_LIQUIDITY_LOCK_START = "ProjectFactory: liquidityLockStartIn is 0"
    ZERO_LIQUIDITY_LOCK_DURATION = "ProjectFactory: liquidityLockDuration is 0"
    NEGATIVE_SUPPLY = "ProjectFactory: token supply is negative"
    INSUFFICIENT_SUPPLY = "ProjectFactory: insufficient token supply"
    PROJECT_NOT_FOUND = "ProjectFactory: project not found"
    CROWDSALE_NOT_CLOSED = "ProjectFactory: crowdsale not closed"


class ProjectNotFound(StateViolation):
    """Raised when a token has no active project."""

    pass


class ProjectFactory(Blueprint):
    """Launches projects: a token, its crowdsale and a vesting wallet for its creator.

    At creation the token supply is split between the platform fee, the
    crowdsale cap, the creator's vesting wallet and a reserve kept by the
    factory for liquidity. Finalizing a project seeds a liquidity pair with
    part of the raised pair token, locks the liquidity shares and every
    leftover token in the creator's vesting wallet and returns the rest of
    the raised pair token to the creator.
    """

    # Global administration
    owner: Address
    wallet: Address  # Receiver of creation fees
    fee_vesting_wallet: ContractId  # FixedVestingWallet receiving token fees
    creation_fee: Amount  # Native amount required by create_project
    token_fee: Amount  # Basis points of every new token supply
    liquidity_pool: ContractId
    pair_token: TokenUid

    # Blueprints of the contracts created per project
    token_blueprint_id: BlueprintId
    crowdsale_blueprint_id: BlueprintId
    vesting_wallet_blueprint_id: BlueprintId

    # Project registry
    total_projects_count: int
    all_projects: list[TokenUid]
    projects: dict[TokenUid, Project]
    project_status: dict[TokenUid, int]

    @public
    def initialize(
        self,
        ctx: Context,
        wallet: Address,
        fee_vesting_wallet: ContractId,
        creation_fee: Amount,
        token_fee: Amount,
        liquidity_pool: ContractId,
        pair_token: TokenUid,
        token_blueprint_id: BlueprintId,
        crowdsale_blueprint_id: BlueprintId,
        vesting_wallet_blueprint_id: BlueprintId,
    ) -> None:
        """Initialize the factory. The caller becomes its owner.

        Args:
            ctx: Transaction context
            wallet: Receiver of the native creation fees
            fee_vesting_wallet: FixedVestingWallet locking the token fees
            creation_fee: Native amount required to create a project
            token_fee: Share of each token supply taken as fee, in basis points
            liquidity_pool: LiquidityPool seeded on finalization
            pair_token: Token the crowdsales are paid in
            token_blueprint_id: Blueprint of the project tokens
            crowdsale_blueprint_id: Blueprint of the crowdsales
            vesting_wallet_blueprint_id: Blueprint of the creators' vesting wallets
        """
        self.owner = ctx.caller_id
        self._set_wallet(wallet)
        self._set_fee_vesting_wallet(fee_vesting_wallet)
        self._set_creation_fee(creation_fee)
        self._set_token_fee(token_fee)
        self._set_liquidity_pool(liquidity_pool)
        self._set_pair_token(pair_token)
        self.token_blueprint_id = token_blueprint_id
        self.crowdsale_blueprint_id = crowdsale_blueprint_id
        self.vesting_wallet_blueprint_id = vesting_wallet_blueprint_id
        self.total_projects_count = 0

    def _only_owner(self, ctx: Context) -> None:
        """Ensure only the contract owner can call this method."""
        if ctx.caller_id != self.owner:
            raise Unauthorized(ProjectFactoryErrors.NOT_OWNER)

    def _only_active(self, token: TokenUid) -> Project:
        if self.project_status.get(token) != ProjectStatus.ACTIVE:
            raise ProjectNotFound(ProjectFactoryErrors.PROJECT_NOT_FOUND)
        return self.projects[token]

    def _generate_salt(self, contract_type: str) -> bytes:
        """Generate a unique salt for contract creation."""
        return self.total_projects_count.to_bytes(8, "big") + bytes(contract_type, "utf-8")

    @public(allow_deposit=True)
    def create_project(self, ctx: Context, project: ProjectInput) -> ProjectCreated:
        """Create a project token, its crowdsale and the creator's vesting wallet.

        The native value attached to the call pays the creation fee and is
        forwarded to the fee wallet in full.
        """
        if ctx.value < self.creation_fee:
            raise InsufficientFunds(ProjectFactoryErrors.INSUFFICIENT_FEE)
        distribution = self.calculate_distribution(
            project.token_total_supply,
            project.crowdsale_rate,
            project.crowdsale_cap,
            project.liquidity_rate,
            project.liquidity_percentage,
        )
        if project.liquidity_lock_start_in <= 0:
            raise InvalidParameter(ProjectFactoryErrors.ZERO_LIQUIDITY_LOCK_START)
        if project.liquidity_lock_duration <= 0:
            raise InvalidParameter(ProjectFactoryErrors.ZERO_LIQUIDITY_LOCK_DURATION)
        if distribution.required_token_amount > project.token_total_supply:
            raise LimitExceeded(ProjectFactoryErrors.INSUFFICIENT_SUPPLY)

        creator = ctx.caller_id
        this = self.syscall.get_contract_id()

        token = TokenUid(
            self.syscall.create_contract(
                self.token_blueprint_id,
                self._generate_salt("token"),
                project.token_name,
                project.token_symbol,
                project.token_total_supply,
                this,
            )
        )
        vesting_wallet = self.syscall.create_contract(
            self.vesting_wallet_blueprint_id,
            self._generate_salt("vesting"),
            creator,
        )
        crowdsale = self.syscall.create_contract(
            self.crowdsale_blueprint_id,
            self._generate_salt("crowdsale"),
            token,
            self.pair_token,
            creator,
            this,
            project.crowdsale_rate,
            project.crowdsale_cap,
            project.crowdsale_individual_cap,
            project.crowdsale_min_purchase_amount,
            project.crowdsale_goal,
            project.crowdsale_opening_time,
            project.crowdsale_closing_time,
        )

        token_contract = self.syscall.get_contract(token)
        if distribution.token_fee_amount > 0:
            token_contract.public().approve(self.fee_vesting_wallet, distribution.token_fee_amount)
            self.syscall.get_contract(self.fee_vesting_wallet).public().deposit(
                token, distribution.token_fee_amount
            )
        token_contract.public().transfer(crowdsale, distribution.crowdsale_amount)
        if distribution.vested_amount > 0:
            token_contract.public().approve(vesting_wallet, distribution.vested_amount)
            self.syscall.get_contract(vesting_wallet).public().deposit(
                token,
                distribution.vested_amount,
                project.token_lock_start_in,
                project.token_lock_duration,
            )

        if ctx.value > 0:
            self.syscall.transfer_native(self.wallet, ctx.value)

        self.projects[token] = Project(
            creator=creator,
            token=token,
            crowdsale=crowdsale,
            vesting_wallet=vesting_wallet,
            pair_token=self.pair_token,
            crowdsale_rate=project.crowdsale_rate,
            crowdsale_cap=project.crowdsale_cap,
            liquidity_rate=project.liquidity_rate,
            liquidity_percentage=project.liquidity_percentage,
            max_liquidity_amount=distribution.max_liquidity_amount,
            max_liquidity_token_amount=distribution.max_liquidity_token_amount,
            liquidity_lock_start_in=project.liquidity_lock_start_in,
            liquidity_lock_duration=project.liquidity_lock_duration,
            created_at=ctx.timestamp,
        )
        self.project_status[token] = ProjectStatus.ACTIVE
        self.all_projects.append(token)
        self.total_projects_count += 1

        logger.info("project %s created by %s", token.hex(), creator.hex())
        created = ProjectCreated(creator, token, crowdsale, vesting_wallet)
        self.syscall.emit_event("ProjectCreated", created._asdict())
        return created

    @public
    def finalize_project(self, ctx: Context, token: TokenUid) -> ProjectFinalized:
        """Finalize the crowdsale of a project and distribute what it raised.

        The project record is retired before any other contract is called, so
        finalizing twice fails with "project not found".
        """
        project = self._only_active(token)
        crowdsale = self.syscall.get_contract(project.crowdsale)
        if not crowdsale.view().has_closed():
            raise StateViolation(ProjectFactoryErrors.CROWDSALE_NOT_CLOSED)

        del self.projects[token]
        self.project_status[token] = ProjectStatus.FINALIZED

        this = self.syscall.get_contract_id()
        token_contract = self.syscall.get_contract(token)
        pair_contract = self.syscall.get_contract(project.pair_token)
        vesting_wallet = self.syscall.get_contract(project.vesting_wallet)

        crowdsale.public().finalize()
        pair_token_amount = pair_contract.view().balance_of(project.crowdsale)
        if pair_token_amount > 0:
            pair_contract.public().transfer_from(project.crowdsale, this, pair_token_amount)

        liquidity_token = b""
        liquidity_amount = 0
        liquidity_pair_amount = min(pair_token_amount, project.max_liquidity_amount)
        if liquidity_pair_amount > 0:
            liquidity_token, liquidity_amount = self._add_liquidity(
                project, liquidity_pair_amount * project.liquidity_rate, liquidity_pair_amount
            )
            lp_contract = self.syscall.get_contract(liquidity_token)
            lp_contract.public().approve(project.vesting_wallet, liquidity_amount)
            vesting_wallet.public().deposit(
                liquidity_token,
                liquidity_amount,
                project.liquidity_lock_start_in,
                project.liquidity_lock_duration,
            )

        remaining_token_amount = token_contract.view().balance_of(this)
        if remaining_token_amount > 0:
            token_contract.public().approve(project.vesting_wallet, remaining_token_amount)
            # Joins the running schedule when the creator's allocation was deposited.
            vesting_wallet.public().deposit(
                token,
                remaining_token_amount,
                project.liquidity_lock_start_in,
                project.liquidity_lock_duration,
            )

        remaining_pair_token_amount = pair_contract.view().balance_of(this)
        if remaining_pair_token_amount > 0:
            pair_contract.public().transfer(project.creator, remaining_pair_token_amount)

        logger.info(
            "project %s finalized: raised %d, liquidity %d",
            token.hex(),
            pair_token_amount,
            liquidity_amount,
        )
        finalized = ProjectFinalized(
            token=token,
            pair_token_amount=pair_token_amount,
            liquidity_token=liquidity_token,
            liquidity_amount=liquidity_amount,
            remaining_token_amount=remaining_token_amount,
            remaining_pair_token_amount=remaining_pair_token_amount,
        )
        self.syscall.emit_event("ProjectFinalized", finalized._asdict())
        return finalized

    def _add_liquidity(
        self, project: Project, token_amount: Amount, pair_token_amount: Amount
    ) -> tuple[ContractId, Amount]:
        pool_id = self.liquidity_pool
        token_contract = self.syscall.get_contract(project.token)
        pair_contract = self.syscall.get_contract(project.pair_token)

        token_contract.public().approve(pool_id, token_amount)
        pair_contract.public().approve(pool_id, pair_token_amount)
        result = self.syscall.get_contract(pool_id).public().add_liquidity(
            project.token,
            token_amount,
            project.pair_token,
            pair_token_amount,
            self.syscall.get_contract_id(),
        )
        # The pool may consume less than approved when the pair already exists.
        token_contract.public().approve(pool_id, 0)
        pair_contract.public().approve(pool_id, 0)
        return result.liquidity_token, result.liquidity

    @public
    def set_wallet(self, ctx: Context, wallet: Address) -> None:
        self._only_owner(ctx)
        self._set_wallet(wallet)

    @public
    def set_fee_vesting_wallet(self, ctx: Context, fee_vesting_wallet: ContractId) -> None:
        self._only_owner(ctx)
        self._set_fee_vesting_wallet(fee_vesting_wallet)

    @public
    def set_creation_fee(self, ctx: Context, creation_fee: Amount) -> None:
        self._only_owner(ctx)
        self._set_creation_fee(creation_fee)

    @public
    def set_token_fee(self, ctx: Context, token_fee: Amount) -> None:
        self._only_owner(ctx)
        self._set_token_fee(token_fee)

    @public
    def set_liquidity_pool(self, ctx: Context, liquidity_pool: ContractId) -> None:
        self._only_owner(ctx)
        self._set_liquidity_pool(liquidity_pool)

    @public
    def set_pair_token(self, ctx: Context, pair_token: TokenUid) -> None:
        """Change the pair token of future projects. Active projects keep theirs."""
        self._only_owner(ctx)
        self._set_pair_token(pair_token)

    @public
    def set_blueprints(
        self,
        ctx: Context,
        token_blueprint_id: BlueprintId,
        crowdsale_blueprint_id: BlueprintId,
        vesting_wallet_blueprint_id: BlueprintId,
    ) -> None:
        self._only_owner(ctx)
        self.token_blueprint_id = token_blueprint_id
        self.crowdsale_blueprint_id = crowdsale_blueprint_id
        self.vesting_wallet_blueprint_id = vesting_wallet_blueprint_id

    @public
    def transfer_ownership(self, ctx: Context, new_owner: Address) -> None:
        self._only_owner(ctx)
        if is_null(new_owner):
            raise InvalidParameter(ProjectFactoryErrors.ZERO_OWNER)
        self.owner = new_owner

    def _set_wallet(self, wallet: Address) -> None:
        if is_null(wallet):
            raise InvalidParameter(ProjectFactoryErrors.ZERO_WALLET)
        self.wallet = wallet

    def _set_fee_vesting_wallet(self, fee_vesting_wallet: ContractId) -> None:
        if is_null(fee_vesting_wallet):
            raise InvalidParameter(ProjectFactoryErrors.ZERO_VESTING)
        self.fee_vesting_wallet = fee_vesting_wallet

    def _set_creation_fee(self, creation_fee: Amount) -> None:
        if creation_fee < 0:
            raise InvalidParameter(ProjectFactoryErrors.NEGATIVE_CREATION_FEE)
        self.creation_fee = creation_fee

    def _set_token_fee(self, token_fee: Amount) -> None:
        if token_fee > self.syscall.settings.MAX_TOKEN_FEE or token_fee < 0:
            raise InvalidParameter(ProjectFactoryErrors.TOKEN_FEE_TOO_HIGH)
        self.token_fee = token_fee

    def _set_liquidity_pool(self, liquidity_pool: ContractId) -> None:
        if is_null(liquidity_pool):
            raise InvalidParameter(ProjectFactoryErrors.ZERO_ROUTER)
        self.liquidity_pool = liquidity_pool

    def _set_pair_token(self, pair_token: TokenUid) -> None:
        if is_null(pair_token):
            raise InvalidParameter(ProjectFactoryErrors.ZERO_PAIR_TOKEN)
        self.pair_token = pair_token

    @view
    def calculate_distribution(
        self,
        total_supply: Amount,
        crowdsale_rate: Amount,
        crowdsale_cap: Amount,
        liquidity_rate: Amount,
        liquidity_percentage: int,
    ) -> TokenDistribution:
        """Split of a token supply for the given project parameters.

        `vested_amount` is negative when the supply cannot cover the fee, the
        crowdsale cap and the liquidity reserve.
        """
        if total_supply < 0:
            raise InvalidParameter(ProjectFactoryErrors.NEGATIVE_SUPPLY)
        if liquidity_rate <= 0:
            raise InvalidParameter(ProjectFactoryErrors.ZERO_LIQUIDITY_RATE)
        if not 0 <= liquidity_percentage <= MAX_LIQUIDITY_PERCENTAGE:
            raise InvalidParameter(ProjectFactoryErrors.LIQUIDITY_PERCENTAGE)
        if crowdsale_rate <= 0:
            raise InvalidParameter(ProjectFactoryErrors.ZERO_CROWDSALE_RATE)

        token_fee_amount = total_supply * self.token_fee // self.syscall.settings.BASIS_POINTS
        max_liquidity_amount = (
            crowdsale_cap // crowdsale_rate * liquidity_percentage // MAX_LIQUIDITY_PERCENTAGE
        )
        max_liquidity_token_amount = max_liquidity_amount * liquidity_rate
        required_token_amount = token_fee_amount + crowdsale_cap + max_liquidity_token_amount
        return TokenDistribution(
            token_fee_amount=token_fee_amount,
            crowdsale_amount=crowdsale_cap,
            max_liquidity_amount=max_liquidity_amount,
            max_liquidity_token_amount=max_liquidity_token_amount,
            required_token_amount=required_token_amount,
            vested_amount=total_supply - required_token_amount,
        )

    @view
    def get_project(self, token: TokenUid) -> Project:
        return self._only_active(token)

    @view
    def get_project_status(self, token: TokenUid) -> int:
        """Status of a token's project, 0 when the token never had one."""
        return self.project_status.get(token, 0)

    @view
    def get_all_projects(self) -> list[TokenUid]:
        return list(self.all_projects)

    @view
    def get_contract_info(self) -> dict[str, str]:
        """Get contract configuration information.

        Returns:
            Dictionary with contract information
        """
        return {
            "owner": self.owner.hex(),
            "wallet": self.wallet.hex(),
            "fee_vesting_wallet": self.fee_vesting_wallet.hex(),
            "creation_fee": str(self.creation_fee),
            "token_fee": str(self.token_fee),
            "liquidity_pool": self.liquidity_pool.hex(),
            "pair_token": self.pair_token.hex(),
            "total_projects": str(self.total_projects_count),
        }
