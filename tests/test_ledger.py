import os
import sys
import unittest
from pathlib import Path

MARKET_SRC = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(MARKET_SRC))

from onchain_market import config as market_config
from onchain_market.events import (
    AdminTransferred,
    ItemDeleted,
    ItemListed,
    ItemUpdated,
)
from onchain_market.exceptions import (
    InvalidAddress,
    InvalidPrice,
    InvalidQuantity,
    ItemNotFound,
    NotAdmin,
    NotItemOwner,
)
from onchain_market.gateway import SettlementGateway
from onchain_market.ledger import MarketplaceLedger
from onchain_market.models import ZERO_ADDRESS, SalesReport, SellerReport, decode_category, encode_category
from onchain_market.transport import LocalBank

ETHER = 10**18
PLATFORM_FEE = 5

OWNER = "0xowner"
SELLER = "0xseller"
BUYER = "0xbuyer"
OTHER = "0xother"


class LedgerTestCase(unittest.TestCase):
    def setUp(self):
        self.bank = LocalBank({BUYER: 100 * ETHER, SELLER: 100 * ETHER, OTHER: 100 * ETHER})
        self.ledger = MarketplaceLedger(PLATFORM_FEE, OWNER, transport=self.bank)

    def list_item(self, seller=SELLER, name="Test Item", price=ETHER, quantity=10, category="Electronics"):
        return self.ledger.list_item(seller, name, "Test Description", price, quantity, category)


class TestDeployment(LedgerTestCase):
    def test_sets_admin(self):
        self.assertEqual(self.ledger.current_admin(), OWNER)
        self.assertEqual(self.ledger.events.events, [AdminTransferred(ZERO_ADDRESS, OWNER)])

    def test_sets_platform_fee(self):
        self.assertEqual(self.ledger.get_platform_fee_percent(), PLATFORM_FEE)

    def test_starts_empty(self):
        self.assertEqual(self.ledger.get_marketplace_report(), SalesReport(0, 0, 0, 0))
        self.assertEqual(self.ledger.get_average_sale_price(), 0)
        self.assertEqual(self.ledger.ledger_balance(), 0)

    def test_rejects_bad_fee(self):
        with self.assertRaises(ValueError):
            MarketplaceLedger(-1, OWNER)
        with self.assertRaises(TypeError):
            MarketplaceLedger(2.5, OWNER)

    def test_fee_above_hundred_warns(self):
        with self.assertLogs("onchain_market.ledger", level="WARNING"):
            MarketplaceLedger(101, OWNER)

    def test_defaults_to_local_bank(self):
        ledger = MarketplaceLedger(PLATFORM_FEE, OWNER)

        self.assertIsInstance(ledger.transport, LocalBank)
        self.assertEqual(ledger.address, "marketplace")


class TestListing(LedgerTestCase):
    def test_list_item(self):
        item_id = self.list_item()

        self.assertEqual(item_id, 1)
        self.assertEqual(self.ledger.events.events[-1], ItemListed(1, SELLER, "Test Item", ETHER, 10))

        item = self.ledger.get_item(1)
        self.assertEqual(item.name, "Test Item")
        self.assertEqual(item.description, "Test Description")
        self.assertEqual(item.price, ETHER)
        self.assertEqual(item.quantity, 10)
        self.assertEqual(item.seller, SELLER)
        self.assertTrue(item.active)
        self.assertEqual(item.category, encode_category("Electronics"))
        self.assertEqual(decode_category(item.category), "Electronics")

    def test_ids_are_sequential(self):
        ids = [self.list_item(), self.list_item(seller=OTHER), self.list_item()]

        self.assertEqual(ids, [1, 2, 3])

    def test_accepts_encoded_category(self):
        item_id = self.list_item(category=encode_category("Books"))

        self.assertEqual(self.ledger.get_item(item_id).category, encode_category("Books"))

    def test_rejects_malformed_category(self):
        with self.assertRaises(ValueError):
            self.list_item(category=b"short")
        with self.assertRaises(ValueError):
            self.list_item(category="x" * 40)

    def test_zero_price(self):
        with self.assertRaises(InvalidPrice):
            self.list_item(price=0)

    def test_zero_quantity(self):
        with self.assertRaises(InvalidQuantity):
            self.list_item(quantity=0)

    def test_non_integer_price(self):
        with self.assertRaises(TypeError):
            self.list_item(price=1.5)

    def test_zero_address_seller(self):
        with self.assertRaises(InvalidAddress):
            self.list_item(seller=ZERO_ADDRESS)

    def test_failed_listing_changes_nothing(self):
        with self.assertRaises(InvalidQuantity):
            self.list_item(quantity=0)

        self.assertEqual(self.ledger.get_seller_items(SELLER), [])
        self.assertEqual(self.ledger.get_seller_stats(SELLER), SellerReport(0, 0, 0))
        self.assertEqual(len(self.ledger.events.of_type(ItemListed)), 0)
        self.assertEqual(self.list_item(), 1)

    def test_failing_subscriber_does_not_fail_listing(self):
        def broken(event):
            raise RuntimeError("indexer offline")

        received = []
        self.ledger.events.subscribe(broken)
        self.ledger.events.subscribe(received.append)

        with self.assertLogs("onchain_market.events", level="ERROR"):
            item_id = self.list_item()

        self.assertEqual(item_id, 1)
        self.assertEqual(self.ledger.get_item(1).seller, SELLER)
        self.assertEqual(received, [ItemListed(1, SELLER, "Test Item", ETHER, 10)])
        self.assertEqual(self.list_item(), 2)

    def test_tracks_seller_items(self):
        self.list_item(name="Item 1", price=ETHER, quantity=5)
        self.list_item(seller=OTHER)
        self.list_item(name="Item 2", price=2 * ETHER, quantity=3, category="Books")

        self.assertEqual(self.ledger.get_seller_items(SELLER), [1, 3])
        self.assertEqual(self.ledger.get_seller_items(OTHER), [2])
        self.assertEqual(self.ledger.get_seller_stats(SELLER).items_listed, 2)


class TestUpdate(LedgerTestCase):
    def setUp(self):
        super().setUp()
        self.list_item(name="Original Item")

    def test_update_item(self):
        self.ledger.update_item(SELLER, 1, "Updated Item", "Updated Description", 2 * ETHER, 5)

        self.assertEqual(self.ledger.events.events[-1], ItemUpdated(1, "Updated Item", 2 * ETHER, 5))
        item = self.ledger.get_item(1)
        self.assertEqual(item.name, "Updated Item")
        self.assertEqual(item.description, "Updated Description")
        self.assertEqual(item.price, 2 * ETHER)
        self.assertEqual(item.quantity, 5)
        self.assertEqual(item.seller, SELLER)
        self.assertEqual(item.category, encode_category("Electronics"))
        self.assertTrue(item.active)

    def test_non_owner(self):
        with self.assertRaises(NotItemOwner):
            self.ledger.update_item(BUYER, 1, "Updated Item", "Updated Description", 2 * ETHER, 5)

        self.assertEqual(self.ledger.get_item(1).name, "Original Item")

    def test_non_existent_item(self):
        with self.assertRaises(ItemNotFound):
            self.ledger.update_item(SELLER, 999, "Updated Item", "Updated Description", 2 * ETHER, 5)

    def test_ownership_checked_before_values(self):
        with self.assertRaises(NotItemOwner):
            self.ledger.update_item(BUYER, 1, "Updated Item", "Updated Description", 0, 0)

    def test_invalid_values(self):
        with self.assertRaises(InvalidPrice):
            self.ledger.update_item(SELLER, 1, "Updated Item", "Updated Description", 0, 5)
        with self.assertRaises(InvalidQuantity):
            self.ledger.update_item(SELLER, 1, "Updated Item", "Updated Description", ETHER, 0)

        item = self.ledger.get_item(1)
        self.assertEqual(item.price, ETHER)
        self.assertEqual(item.quantity, 10)
        self.assertEqual(len(self.ledger.events.of_type(ItemUpdated)), 0)

    def test_update_does_not_reactivate(self):
        self.ledger.delete_item(SELLER, 1)
        self.ledger.update_item(SELLER, 1, "Relisted?", "No", ETHER, 3)

        item = self.ledger.get_item(1)
        self.assertFalse(item.active)
        self.assertEqual(item.quantity, 3)


class TestDeletion(LedgerTestCase):
    def setUp(self):
        super().setUp()
        self.list_item()

    def test_delete_item(self):
        self.ledger.delete_item(SELLER, 1)

        self.assertEqual(self.ledger.events.events[-1], ItemDeleted(1, SELLER))
        item = self.ledger.get_item(1)
        self.assertFalse(item.active)
        self.assertEqual(item.quantity, 10)
        self.assertEqual(self.ledger.get_seller_items(SELLER), [1])

    def test_delete_twice(self):
        self.ledger.delete_item(SELLER, 1)
        self.ledger.delete_item(SELLER, 1)

        self.assertFalse(self.ledger.get_item(1).active)
        self.assertEqual(len(self.ledger.events.of_type(ItemDeleted)), 2)

    def test_non_owner(self):
        with self.assertRaises(NotItemOwner):
            self.ledger.delete_item(BUYER, 1)

        self.assertTrue(self.ledger.get_item(1).active)

    def test_non_existent_item(self):
        with self.assertRaises(ItemNotFound):
            self.ledger.delete_item(SELLER, 2)

    def test_deleted_item_not_counted_as_active(self):
        self.list_item()
        self.ledger.delete_item(SELLER, 1)

        report = self.ledger.get_marketplace_report()
        self.assertEqual(report.total_items_listed, 2)
        self.assertEqual(report.active_listings, 1)


class TestReads(LedgerTestCase):
    def test_get_item_not_found(self):
        with self.assertRaises(ItemNotFound):
            self.ledger.get_item(0)
        with self.assertRaises(ItemNotFound):
            self.ledger.get_item(1)

    def test_get_item_returns_copy(self):
        self.list_item()

        item = self.ledger.get_item(1)
        item.quantity = 0
        item.seller = BUYER

        stored = self.ledger.get_item(1)
        self.assertEqual(stored.quantity, 10)
        self.assertEqual(stored.seller, SELLER)

    def test_unknown_identities(self):
        self.assertEqual(self.ledger.get_seller_items("0xnobody"), [])
        self.assertEqual(self.ledger.get_purchase_history("0xnobody"), [])
        self.assertEqual(self.ledger.get_seller_stats("0xnobody"), SellerReport(0, 0, 0))

    def test_returned_lists_are_copies(self):
        self.list_item()

        self.ledger.get_seller_items(SELLER).append(99)

        self.assertEqual(self.ledger.get_seller_items(SELLER), [1])

    def test_reads_are_idempotent(self):
        self.list_item()
        self.ledger.buy_item(BUYER, 1, 2, 2 * ETHER)

        self.assertEqual(self.ledger.get_item(1), self.ledger.get_item(1))
        self.assertEqual(self.ledger.get_seller_stats(SELLER), self.ledger.get_seller_stats(SELLER))
        self.assertEqual(self.ledger.get_marketplace_report(), self.ledger.get_marketplace_report())


class TestAdmin(LedgerTestCase):
    def test_transfer_admin(self):
        self.ledger.transfer_admin(OWNER, OTHER)

        self.assertEqual(self.ledger.current_admin(), OTHER)
        self.assertEqual(self.ledger.events.events[-1], AdminTransferred(OWNER, OTHER))

    def test_transfer_admin_to_zero_address(self):
        with self.assertRaises(InvalidAddress):
            self.ledger.transfer_admin(OWNER, ZERO_ADDRESS)

        self.assertEqual(self.ledger.current_admin(), OWNER)

    def test_new_admin_controls_fee(self):
        self.ledger.transfer_admin(OWNER, OTHER)

        with self.assertRaises(NotAdmin):
            self.ledger.set_platform_fee_percent(OWNER, 10)
        self.ledger.set_platform_fee_percent(OTHER, 10)
        self.assertEqual(self.ledger.get_platform_fee_percent(), 10)

    def test_set_fee_non_admin(self):
        with self.assertRaises(NotAdmin):
            self.ledger.set_platform_fee_percent(SELLER, 10)

        self.assertEqual(self.ledger.get_platform_fee_percent(), PLATFORM_FEE)

    def test_set_fee_negative(self):
        with self.assertRaises(ValueError):
            self.ledger.set_platform_fee_percent(OWNER, -5)

    def test_set_fee_above_hundred_warns(self):
        with self.assertLogs("onchain_market.ledger", level="WARNING"):
            self.ledger.set_platform_fee_percent(OWNER, 120)

        self.assertEqual(self.ledger.get_platform_fee_percent(), 120)


class TestFromConfig(unittest.TestCase):
    def setUp(self):
        self._original_env = os.environ.copy()
        for key in list(os.environ):
            if key.startswith("MARKETPLACE_"):
                del os.environ[key]
        os.environ["MARKETPLACE_ADMIN"] = OWNER
        os.environ["MARKETPLACE_FEE_PERCENT"] = "7"

    def tearDown(self):
        os.environ.clear()
        os.environ.update(self._original_env)
        market_config._config = None

    def test_builds_local_ledger(self):
        ledger = MarketplaceLedger.from_config(market_config.Config())

        self.assertEqual(ledger.current_admin(), OWNER)
        self.assertEqual(ledger.get_platform_fee_percent(), 7)
        self.assertIsInstance(ledger.transport, LocalBank)

    def test_builds_gateway_ledger(self):
        os.environ["MARKETPLACE_GATEWAY_URL"] = "https://settle.example.com/v1"
        os.environ["MARKETPLACE_GATEWAY_TOKEN"] = "test-token"
        os.environ["MARKETPLACE_ADDRESS"] = "market-7"

        ledger = MarketplaceLedger.from_config(market_config.Config())

        self.assertIsInstance(ledger.transport, SettlementGateway)
        self.assertEqual(ledger.address, "market-7")

    def test_invalid_config(self):
        os.environ.pop("MARKETPLACE_ADMIN")

        with self.assertRaises(market_config.ConfigurationError):
            MarketplaceLedger.from_config(market_config.Config())


if __name__ == '__main__':
    unittest.main()
