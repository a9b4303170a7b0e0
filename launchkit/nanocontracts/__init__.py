from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.exception import NCFail
from launchkit.nanocontracts.runner import Runner
from launchkit.nanocontracts.types import public, view

__all__ = [
    'Blueprint',
    'Context',
    'NCFail',
    'Runner',
    'public',
    'view',
]
