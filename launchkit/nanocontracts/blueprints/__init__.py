from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.blueprints.crowdsale import Crowdsale
from launchkit.nanocontracts.blueprints.liquidity_pool import LiquidityPair, LiquidityPool
from launchkit.nanocontracts.blueprints.project_factory import ProjectFactory
from launchkit.nanocontracts.blueprints.token import Token
from launchkit.nanocontracts.blueprints.vesting_wallet import FixedVestingWallet, VestingWallet

# Built-in blueprints by name, as referenced by `settings.BLUEPRINTS`.
_blueprints_mapper: dict[str, type[Blueprint]] = {
    'Token': Token,
    'VestingWallet': VestingWallet,
    'FixedVestingWallet': FixedVestingWallet,
    'Crowdsale': Crowdsale,
    'LiquidityPool': LiquidityPool,
    'LiquidityPair': LiquidityPair,
    'ProjectFactory': ProjectFactory,
}

__all__ = [
    'Crowdsale',
    'FixedVestingWallet',
    'LiquidityPair',
    'LiquidityPool',
    'ProjectFactory',
    'Token',
    'VestingWallet',
]
