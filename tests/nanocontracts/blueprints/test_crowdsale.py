from launchkit.conf import settings
from launchkit.nanocontracts.blueprints.crowdsale import (
    Crowdsale,
    CrowdsaleErrors,
    SaleState,
)
from launchkit.nanocontracts.blueprints.token import Token
from launchkit.nanocontracts.exception import (
    InsufficientFunds,
    InvalidParameter,
    LimitExceeded,
    NCFail,
    StateViolation,
    Unauthorized,
)
from launchkit.nanocontracts.runner import Runner
from launchkit.nanocontracts.types import NULL_ADDRESS
from tests.nanocontracts.blueprints.unittest import BlueprintTestCase


class CrowdsaleTestCase(BlueprintTestCase):
    """Test suite for the Crowdsale blueprint contract."""

    def setUp(self):
        super().setUp()

        # Set up contract
        self.contract_id = self.gen_random_contract_id()
        self.blueprint_id = self._register_blueprint_class(Crowdsale)

        # Accounts
        self.owner = self.gen_random_address()
        self.finalizer = self.gen_random_address()
        self.buyer = self.gen_random_address()
        self.other_buyer = self.gen_random_address()

        # Tokens
        self.token = self.create_token(self.owner, 1_000_000, "Sale Token", "SALE")
        self.pair_token = self.create_token(self.buyer, 1_000_000, "Pair Token", "PAIR")
        self.transfer(self.pair_token, self.buyer, self.other_buyer, 500_000)

        # Default test parameters
        self.rate = 1
        self.cap = 100
        self.individual_cap = 60
        self.min_purchase_amount = 2
        self.goal = 50
        self.opening_time = self.now() + 100
        self.closing_time = self.opening_time + 1000

    def _initialize_sale(self, params: dict | None = None, fund: int | None = None) -> None:
        """Initialize sale with default or custom parameters and fund it."""
        if params is None:
            params = {}

        args = (
            params.get("token", self.token),
            params.get("pair_token", self.pair_token),
            params.get("owner", self.owner),
            params.get("finalizer", self.finalizer),
            params.get("rate", self.rate),
            params.get("cap", self.cap),
            params.get("individual_cap", self.individual_cap),
            params.get("min_purchase_amount", self.min_purchase_amount),
            params.get("goal", self.goal),
            params.get("opening_time", self.opening_time),
            params.get("closing_time", self.closing_time),
        )
        self.runner.create_contract(
            self.contract_id, self.blueprint_id, self.create_context(caller_id=self.owner), *args
        )

        if fund is None:
            fund = params.get("cap", self.cap)
        if fund > 0:
            self.transfer(self.token, self.owner, self.contract_id, fund)

    def _buy(self, amount: int, buyer: bytes | None = None, beneficiary: bytes | None = None):
        buyer = buyer or self.buyer
        beneficiary = beneficiary or buyer
        self.approve(self.pair_token, buyer, self.contract_id, amount)
        return self.runner.call_public_method(
            self.contract_id, "buy", self.create_context(caller_id=buyer), beneficiary, amount
        )

    def _call(self, method: str, caller: bytes, *args):
        return self.runner.call_public_method(
            self.contract_id, method, self.create_context(caller_id=caller), *args
        )

    def _view(self, method: str, *args):
        return self.call_view(self.contract_id, method, *args)

    def _open(self) -> None:
        self.set_time(self.opening_time)

    def _close(self) -> None:
        self.set_time(self.closing_time + 1)

    def test_initialize(self):
        self._initialize_sale()

        contract = self.get_readonly_contract(self.contract_id)
        assert isinstance(contract, Crowdsale)
        self.assertEqual(contract.token, self.token)
        self.assertEqual(contract.pair_token, self.pair_token)
        self.assertEqual(contract.owner, self.owner)
        self.assertEqual(contract.finalizer, self.finalizer)
        self.assertEqual(contract.rate, self.rate)
        self.assertEqual(contract.cap, self.cap)
        self.assertEqual(contract.tokens_sold, 0)
        self.assertEqual(contract.contributors, 0)
        self.assertFalse(contract.finalized)

        self.assertFalse(self._view("is_open"))
        self.assertFalse(self._view("has_closed"))
        self.assertEqual(self._view("get_state"), SaleState.PENDING)

    def test_initialize_invalid_params(self):
        cases = [
            ({"token": NULL_ADDRESS}, CrowdsaleErrors.ZERO_TOKEN),
            ({"pair_token": NULL_ADDRESS}, CrowdsaleErrors.ZERO_PAIR_TOKEN),
            ({"owner": NULL_ADDRESS}, CrowdsaleErrors.ZERO_OWNER),
            ({"finalizer": NULL_ADDRESS}, CrowdsaleErrors.ZERO_FINALIZER),
            ({"rate": 0}, CrowdsaleErrors.ZERO_RATE),
            ({"cap": 0}, CrowdsaleErrors.ZERO_CAP),
            ({"goal": 101}, CrowdsaleErrors.GOAL_ABOVE_CAP),
            ({"rate": 101}, CrowdsaleErrors.RATE_ABOVE_CAP),
            ({"opening_time": self.now() - 1}, CrowdsaleErrors.OPENING_IN_PAST),
            ({"closing_time": self.opening_time}, CrowdsaleErrors.INVALID_TIME_RANGE),
        ]
        for params, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(InvalidParameter) as cm:
                    self._initialize_sale(params, fund=0)
                self.assertEqual(str(cm.exception), message)
                self.assertFalse(self.runner.has_contract(self.contract_id))

    def test_buy_before_opening(self):
        self._initialize_sale()
        with self.assertRaises(StateViolation) as cm:
            self._buy(10)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_OPEN)

    def test_buy(self):
        self._initialize_sale()
        self._open()
        self.assertTrue(self._view("is_open"))

        tokens = self._buy(10)
        self.assertEqual(tokens, 10 * self.rate)
        self.assertEqual(self._view("balance_of", self.buyer), 10)
        self.assertEqual(self._view("contribution_of", self.buyer), 10)
        self.assertEqual(self._view("pair_token_raised"), 10)
        self.assertEqual(self.balance_of(self.pair_token, self.contract_id), 10)

        contract = self.get_readonly_contract(self.contract_id)
        self.assertEqual(contract.tokens_sold, 10)
        self.assertEqual(contract.contributors, 1)

        events = self.get_events("TokensPurchased")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].data["beneficiary"], self.buyer)
        self.assertEqual(events[0].data["amount"], 10)

    def test_contributors_counted_once(self):
        self._initialize_sale()
        self._open()

        self._buy(10)
        self._buy(10)
        self._buy(5, buyer=self.other_buyer)
        # Buying for someone else counts the beneficiary
        self._buy(5, buyer=self.other_buyer, beneficiary=self.buyer)

        contract = self.get_readonly_contract(self.contract_id)
        self.assertEqual(contract.contributors, 2)
        self.assertEqual(contract.tokens_sold, 30)
        self.assertEqual(self._view("balance_of", self.buyer), 25)

    def test_buy_invalid_params(self):
        self._initialize_sale()
        self._open()

        with self.assertRaises(InvalidParameter) as cm:
            self._buy(10, beneficiary=NULL_ADDRESS)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.ZERO_BENEFICIARY)

        with self.assertRaises(InvalidParameter) as cm:
            self._buy(0)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.ZERO_AMOUNT)

        with self.assertRaises(LimitExceeded) as cm:
            self._buy(1)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.BELOW_MIN)

    def test_purchase_limits(self):
        self._initialize_sale()
        self._open()

        self._buy(60)
        with self.assertRaises(LimitExceeded) as cm:
            self._buy(2)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.INDIVIDUAL_CAP_EXCEEDED)

        self._buy(38, buyer=self.other_buyer)
        with self.assertRaises(LimitExceeded) as cm:
            self._buy(3, buyer=self.other_buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.CAP_EXCEEDED)

        # Failed purchases have no effect
        contract = self.get_readonly_contract(self.contract_id)
        self.assertEqual(contract.tokens_sold, 98)
        self.assertEqual(self.balance_of(self.pair_token, self.contract_id), 98)

    def test_unlimited_individual_cap(self):
        self._initialize_sale({"individual_cap": 0, "min_purchase_amount": 0})
        self._open()

        self._buy(1)
        self._buy(99)
        self.assertEqual(self._view("balance_of", self.buyer), 100)

    def test_insufficient_balance(self):
        self._initialize_sale(fund=30)
        self._open()

        self._buy(30)
        with self.assertRaises(InsufficientFunds) as cm:
            self._buy(2, buyer=self.other_buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.INSUFFICIENT_BALANCE)

    def test_closes_when_cap_reached(self):
        self._initialize_sale({"individual_cap": 0})
        self._open()

        self._buy(100)
        self.assertFalse(self._view("is_open"))
        self.assertTrue(self._view("has_closed"))
        self.assertEqual(self._view("get_state"), SaleState.GOAL_REACHED)

        with self.assertRaises(StateViolation) as cm:
            self._buy(2)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_OPEN)

    def test_closes_after_closing_time(self):
        self._initialize_sale()
        self.set_time(self.closing_time)
        self.assertTrue(self._view("is_open"))
        self._close()
        self.assertFalse(self._view("is_open"))
        self.assertTrue(self._view("has_closed"))
        self.assertEqual(self._view("get_state"), SaleState.GOAL_NOT_REACHED)

    def test_finalize(self):
        self._initialize_sale()
        self._open()
        self._buy(40)
        self._buy(20, buyer=self.other_buyer)

        with self.assertRaises(StateViolation) as cm:
            self._call("finalize", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_CLOSED)

        self._close()
        with self.assertRaises(Unauthorized) as cm:
            self._call("finalize", self.owner)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_FINALIZER)

        self._call("finalize", self.finalizer)

        self.assertTrue(self.get_readonly_contract(self.contract_id).finalized)
        self.assertEqual(self._view("get_state"), SaleState.FINALIZED)
        # Unsold tokens go to the finalizer, sold tokens stay for the buyers
        self.assertEqual(self.balance_of(self.token, self.finalizer), 40)
        self.assertEqual(self.balance_of(self.token, self.contract_id), 60)
        # The finalizer may collect every raised pair unit
        self.assertEqual(
            self.call_view(self.pair_token, "allowance", self.contract_id, self.finalizer), 60
        )

        with self.assertRaises(StateViolation) as cm:
            self._call("finalize", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.ALREADY_FINALIZED)

    def test_finalize_when_cap_reached(self):
        self._initialize_sale({"individual_cap": 0})
        self._open()
        self._buy(100)

        self._call("finalize", self.finalizer)
        self.assertEqual(self.balance_of(self.token, self.finalizer), 0)

    def test_finalize_goal_not_reached(self):
        self._initialize_sale()
        self._open()
        self._buy(49)
        self._close()

        with self.assertRaises(StateViolation) as cm:
            self._call("finalize", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.GOAL_NOT_REACHED)

    def test_finalize_expired(self):
        self._initialize_sale()
        self._open()
        self._buy(50)
        self.set_time(self.closing_time + self.runner.settings.CROWDSALE_FINALIZATION_WINDOW)
        self.assertFalse(self._view("is_expired"))

        self.advance_time(1)
        self.assertTrue(self._view("is_expired"))
        with self.assertRaises(StateViolation) as cm:
            self._call("finalize", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.FINALIZE_EXPIRED)

    def test_finalization_window_from_runner_settings(self):
        self.runner = Runner(settings.model_copy(update={"CROWDSALE_FINALIZATION_WINDOW": 10}))
        self.token_blueprint_id = self._register_blueprint_class(Token)
        self.blueprint_id = self._register_blueprint_class(Crowdsale)
        self.token = self.create_token(self.owner, 1_000_000, "Sale Token", "SALE")
        self.pair_token = self.create_token(self.buyer, 1_000_000, "Pair Token", "PAIR")

        self._initialize_sale()
        self._open()
        self._buy(50)
        self.set_time(self.closing_time + 100)

        self.assertTrue(self._view("is_expired"))
        with self.assertRaises(StateViolation) as cm:
            self._call("finalize", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.FINALIZE_EXPIRED)

    def test_withdraw_tokens(self):
        self._initialize_sale()
        self._open()
        self._buy(50)

        with self.assertRaises(StateViolation) as cm:
            self._call("withdraw_tokens", self.buyer, self.buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_FINALIZED)

        self._close()
        self._call("finalize", self.finalizer)

        with self.assertRaises(StateViolation) as cm:
            self._call("withdraw_tokens", self.buyer, self.other_buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOTHING_DUE)

        # Anyone may trigger the payout, tokens go to the beneficiary
        self._call("withdraw_tokens", self.other_buyer, self.buyer)
        self.assertEqual(self.balance_of(self.token, self.buyer), 50)
        self.assertEqual(self._view("balance_of", self.buyer), 0)
        self.assertEqual(self.balance_of(self.token, self.contract_id), 0)

        with self.assertRaises(StateViolation):
            self._call("withdraw_tokens", self.buyer, self.buyer)

    def test_claim_refund(self):
        self._initialize_sale()
        self._open()
        before = self.balance_of(self.pair_token, self.buyer)
        self._buy(20)

        with self.assertRaises(StateViolation) as cm:
            self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.REFUNDS_NOT_DUE)

        self._close()
        with self.assertRaises(StateViolation) as cm:
            self._call("claim_refund", self.buyer, self.other_buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOTHING_DUE)

        refunded = self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(refunded, 20)
        self.assertEqual(self.balance_of(self.pair_token, self.buyer), before)
        self.assertEqual(self._view("balance_of", self.buyer), 0)
        self.assertEqual(self._view("contribution_of", self.buyer), 0)

        with self.assertRaises(StateViolation) as cm:
            self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOTHING_DUE)

    def test_claim_refund_goal_reached(self):
        self._initialize_sale()
        self._open()
        self._buy(50)
        self._close()

        with self.assertRaises(StateViolation) as cm:
            self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.REFUNDS_NOT_DUE)

    def test_claim_refund_after_finalization_window(self):
        self._initialize_sale()
        self._open()
        self._buy(50)
        self.set_time(self.closing_time + self.runner.settings.CROWDSALE_FINALIZATION_WINDOW + 1)

        self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(self._view("contribution_of", self.buyer), 0)

    def test_no_refund_after_finalization(self):
        self._initialize_sale()
        self._open()
        self._buy(50)
        self._close()
        self._call("finalize", self.finalizer)

        self.set_time(self.closing_time + self.runner.settings.CROWDSALE_FINALIZATION_WINDOW + 1)
        with self.assertRaises(StateViolation) as cm:
            self._call("claim_refund", self.buyer, self.buyer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.REFUNDS_NOT_DUE)
        self.assertFalse(self._view("is_expired"))

    def test_withdraw_expired_tokens(self):
        self._initialize_sale()
        self._open()
        self._buy(20)

        with self.assertRaises(StateViolation) as cm:
            self._call("withdraw_expired_tokens", self.owner)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_EXPIRED)

        self._close()
        with self.assertRaises(Unauthorized) as cm:
            self._call("withdraw_expired_tokens", self.finalizer)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOT_OWNER)

        owner_before = self.balance_of(self.token, self.owner)
        withdrawn = self._call("withdraw_expired_tokens", self.owner)
        self.assertEqual(withdrawn, self.cap)
        self.assertEqual(self.balance_of(self.token, self.owner), owner_before + self.cap)

        with self.assertRaises(StateViolation) as cm:
            self._call("withdraw_expired_tokens", self.owner)
        self.assertEqual(str(cm.exception), CrowdsaleErrors.NOTHING_TO_WITHDRAW)

        # Buyers still get their pair tokens back
        self._call("claim_refund", self.buyer, self.buyer)

    def test_get_sale_info(self):
        self._initialize_sale()
        self._open()
        self._buy(30)

        info = self._view("get_sale_info")
        self.assertEqual(info.tokens_sold, 30)
        self.assertEqual(info.pair_token_raised, 30)
        self.assertEqual(info.contributors, 1)
        self.assertEqual(info.state, SaleState.OPEN)
        self.assertFalse(info.finalized)

    def test_public_method_is_not_a_view(self):
        self._initialize_sale()
        with self.assertRaises(NCFail):
            self.runner.call_view_method(self.contract_id, "finalize")

    def test_scenario(self):
        """Two buyers, one over the individual cap, sale finalized at closing."""
        self._initialize_sale()
        self._open()

        self._buy(50)
        with self.assertRaises(LimitExceeded):
            self._buy(11)
        self._buy(10)
        self._buy(40, buyer=self.other_buyer)
        self.assertTrue(self._view("has_closed"))

        self._call("finalize", self.finalizer)
        self._call("withdraw_tokens", self.buyer, self.buyer)
        self._call("withdraw_tokens", self.other_buyer, self.other_buyer)

        self.assertEqual(self.balance_of(self.token, self.buyer), 60)
        self.assertEqual(self.balance_of(self.token, self.other_buyer), 40)
        self.assertEqual(self.balance_of(self.token, self.contract_id), 0)
        self.assertEqual(self._view("pair_token_raised"), 100)
