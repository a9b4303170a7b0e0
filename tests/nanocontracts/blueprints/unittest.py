import os
import unittest
from typing import Any, Optional

from launchkit.conf import settings
from launchkit.nanocontracts.blueprint import Blueprint
from launchkit.nanocontracts.blueprints.token import Token
from launchkit.nanocontracts.context import Context
from launchkit.nanocontracts.runner import NCEvent, Runner
from launchkit.nanocontracts.types import Address, BlueprintId, ContractId, TokenUid


class BlueprintTestCase(unittest.TestCase):
    """Base class of blueprint tests. Every test gets a fresh runner."""

    def setUp(self) -> None:
        super().setUp()
        self.runner = Runner(settings)
        self.token_blueprint_id = self._register_blueprint_class(Token)

    def _register_blueprint_class(self, blueprint_class: type[Blueprint]) -> BlueprintId:
        return self.runner.register_blueprint_class(blueprint_class)

    def gen_random_address(self) -> Address:
        return Address(os.urandom(settings.ADDRESS_LENGTH))

    def gen_random_contract_id(self) -> ContractId:
        return ContractId(self.gen_random_address())

    def now(self) -> int:
        return self.runner.clock.now()

    def set_time(self, timestamp: int) -> None:
        self.runner.clock.set_time(timestamp)

    def advance_time(self, seconds: int) -> int:
        return self.runner.clock.advance(seconds)

    def create_context(
        self,
        caller_id: Optional[bytes] = None,
        timestamp: Optional[int] = None,
        value: int = 0,
    ) -> Context:
        if caller_id is None:
            caller_id = self.gen_random_address()
        if timestamp is None:
            timestamp = self.now()
        return Context(caller_id=Address(caller_id), timestamp=timestamp, value=value)

    def get_readonly_contract(self, contract_id: bytes) -> Blueprint:
        return self.runner.get_contract(ContractId(Address(contract_id)))

    def call_view(self, contract_id: bytes, method_name: str, *args: Any) -> Any:
        return self.runner.call_view_method(ContractId(Address(contract_id)), method_name, *args)

    def get_events(self, name: str) -> list[NCEvent]:
        return [event for event in self.runner.events if event.name == name]

    # Ledger helpers

    def create_token(
        self,
        holder: bytes,
        total_supply: int,
        name: str = "Test Token",
        symbol: str = "TST",
    ) -> TokenUid:
        token_id = TokenUid(self.gen_random_contract_id())
        self.runner.create_contract(
            token_id,
            self.token_blueprint_id,
            self.create_context(caller_id=holder),
            name,
            symbol,
            total_supply,
            holder,
        )
        return token_id

    def balance_of(self, token: bytes, address: bytes) -> int:
        return self.call_view(token, "balance_of", address)

    def transfer(self, token: bytes, from_: bytes, to: bytes, amount: int) -> None:
        self.runner.call_public_method(
            ContractId(Address(token)), "transfer", self.create_context(caller_id=from_), to, amount
        )

    def approve(self, token: bytes, owner: bytes, spender: bytes, amount: int) -> None:
        self.runner.call_public_method(
            ContractId(Address(token)), "approve", self.create_context(caller_id=owner), spender, amount
        )
