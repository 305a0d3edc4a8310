"""
Marketplace ledger

Owns every listing, seller counter and purchase record, and runs the
purchase protocol: escrow the buyer's payment, update inventory and
accounting, then pay the seller and refund any excess.

Each public mutating operation is atomic. Mutations are recorded in an undo
journal; if anything raises (a guard, a refused transfer, a failed
reentrant call) the journal is replayed backwards, the value transport is
restored and staged events are dropped before the error reaches the caller.
"""
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Union

from .access import AccessControl
from .config import DEFAULT_LEDGER_ADDRESS, Config, get_config
from .events import (
    EventLog,
    ItemDeactivated,
    ItemDeleted,
    ItemListed,
    ItemPurchased,
    ItemUpdated,
)
from .exceptions import (
    CannotBuyOwnItem,
    FeeOverflow,
    InsufficientPayment,
    InsufficientQuantity,
    InvalidAddress,
    InvalidPrice,
    InvalidQuantity,
    ItemNotActive,
    ItemNotFound,
    NotItemOwner,
    TransferFailed,
    TransportError,
)
from .gateway import SettlementGateway
from .models import (
    CATEGORY_SIZE,
    ZERO_ADDRESS,
    Item,
    SalesReport,
    SellerReport,
    SellerStats,
    encode_category,
)
from .reporting import average_price, build_sales_report, build_seller_report
from .transport import LocalBank, ValueTransport

logger = logging.getLogger(__name__)


def _require_uint(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    return value


def valid_price(price: int):
    if _require_uint(price, 'price') <= 0:
        raise InvalidPrice(price)


def valid_quantity(quantity: int):
    if _require_uint(quantity, 'quantity') <= 0:
        raise InvalidQuantity(quantity)


def _as_category(category: Union[str, bytes]) -> bytes:
    if isinstance(category, str):
        return encode_category(category)
    if len(category) != CATEGORY_SIZE:
        raise ValueError(f"Category tag must be {CATEGORY_SIZE} bytes")
    return bytes(category)


class MarketplaceLedger:
    """Listings, purchases and platform fees for a single marketplace"""

    def __init__(self, platform_fee_percent: int, admin: str,
                 transport: Optional[ValueTransport] = None,
                 address: str = DEFAULT_LEDGER_ADDRESS):
        if _require_uint(platform_fee_percent, 'platform_fee_percent') < 0:
            raise ValueError("platform_fee_percent must not be negative")
        if platform_fee_percent > 100:
            logger.warning(f"Platform fee of {platform_fee_percent}% exceeds the sale price")
        if address == ZERO_ADDRESS:
            raise InvalidAddress(address)

        self.address = address
        self.transport = transport if transport is not None else LocalBank()
        self.events = EventLog()
        self.access = AccessControl(admin, self.events)

        self._platform_fee_percent = platform_fee_percent
        self._next_item_id = 1
        self._total_sales = 0
        self._total_revenue = 0
        self._items: Dict[int, Item] = {}
        self._seller_items: Dict[str, List[int]] = {}
        self._purchase_history: Dict[str, List[int]] = {}
        self._seller_stats: Dict[str, SellerStats] = {}

        self._undo: List[Callable[[], None]] = []
        self._depth = 0
        self.events.publish()

    @classmethod
    def from_config(cls, config: Optional[Config] = None,
                    transport: Optional[ValueTransport] = None) -> 'MarketplaceLedger':
        """Build a ledger from environment settings"""
        config = config or get_config()
        config.validate()
        if transport is None and config.gateway_url:
            transport = SettlementGateway(config)
        return cls(
            config.fee_percent,
            config.admin,
            transport=transport,
            address=config.ledger_address,
        )

    # Transactions

    @contextmanager
    def _transaction(self, operation: str):
        undo_mark = len(self._undo)
        event_mark = self.events.mark()
        admin = self.access.snapshot()
        balances = self.transport.snapshot()
        self._depth += 1
        try:
            yield
        except Exception as e:
            logger.warning(f"{operation} rolled back: {e}")
            while len(self._undo) > undo_mark:
                self._undo.pop()()
            self.access.restore(admin)
            self.events.discard(event_mark)
            self.transport.restore(balances)
            raise
        finally:
            self._depth -= 1

        if self._depth == 0:
            self._undo.clear()
            self.transport.commit()
            self.events.publish()

    def _assign(self, target, attr: str, value):
        previous = getattr(target, attr)
        self._undo.append(lambda: setattr(target, attr, previous))
        setattr(target, attr, value)

    def _insert(self, mapping: dict, key, value):
        mapping[key] = value
        self._undo.append(lambda: mapping.pop(key))

    def _append(self, sequence: list, value):
        sequence.append(value)
        self._undo.append(sequence.pop)

    def _send(self, recipient: str, amount: int):
        try:
            self.transport.transfer(self.address, recipient, amount)
        except TransportError as e:
            logger.error(f"Transfer of {amount} to {recipient} failed: {e}")
            raise TransferFailed(recipient, amount, str(e)) from e

    def _escrow(self, payer: str, amount: int):
        try:
            self.transport.transfer(payer, self.address, amount)
        except TransportError as e:
            logger.error(f"Could not escrow {amount} from {payer}: {e}")
            raise TransferFailed(self.address, amount, str(e)) from e

    # Guards

    def _existing_item(self, item_id: int) -> Item:
        item = self._items.get(item_id)
        if item is None or not item.exists:
            raise ItemNotFound(item_id)
        return item

    def _owned_item(self, item_id: int, caller: str) -> Item:
        item = self._existing_item(item_id)
        if caller != item.seller:
            raise NotItemOwner(item_id, caller)
        return item

    def _stats_for(self, seller: str) -> SellerStats:
        stats = self._seller_stats.get(seller)
        if stats is None:
            stats = SellerStats()
            self._insert(self._seller_stats, seller, stats)
        return stats

    def _list_for(self, index: Dict[str, List[int]], identity: str) -> List[int]:
        entries = index.get(identity)
        if entries is None:
            entries = []
            self._insert(index, identity, entries)
        return entries

    # Listings

    def list_item(self, caller: str, name: str, description: str, price: int,
                  quantity: int, category: Union[str, bytes]) -> int:
        """List a new item for sale and return its id"""
        with self._transaction('list_item'):
            if caller == ZERO_ADDRESS:
                raise InvalidAddress(caller)
            valid_price(price)
            valid_quantity(quantity)
            tag = _as_category(category)

            item_id = self._next_item_id
            self._assign(self, '_next_item_id', item_id + 1)
            self._insert(self._items, item_id, Item(
                id=item_id,
                name=name,
                description=description,
                price=price,
                quantity=quantity,
                seller=caller,
                active=True,
                category=tag,
            ))
            self._append(self._list_for(self._seller_items, caller), item_id)
            stats = self._stats_for(caller)
            self._assign(stats, 'items_listed', stats.items_listed + 1)

            self.events.emit(ItemListed(item_id, caller, name, price, quantity))
            logger.info(f"Item {item_id} listed by {caller}: {quantity} x {price}")
        return item_id

    def update_item(self, caller: str, item_id: int, name: str, description: str,
                    price: int, quantity: int):
        with self._transaction('update_item'):
            item = self._owned_item(item_id, caller)
            valid_price(price)
            valid_quantity(quantity)

            self._assign(item, 'name', name)
            self._assign(item, 'description', description)
            self._assign(item, 'price', price)
            self._assign(item, 'quantity', quantity)

            self.events.emit(ItemUpdated(item_id, name, price, quantity))
            logger.info(f"Item {item_id} updated: {quantity} x {price}")

    def delete_item(self, caller: str, item_id: int):
        """Deactivate a listing. The item stays readable and indexed."""
        with self._transaction('delete_item'):
            item = self._owned_item(item_id, caller)
            self._assign(item, 'active', False)

            self.events.emit(ItemDeleted(item_id, item.seller))
            logger.info(f"Item {item_id} deleted by {caller}")

    # Purchases

    def buy_item(self, caller: str, item_id: int, quantity: int, payment: int):
        """Buy ``quantity`` units of an item, attaching ``payment``

        Inventory and accounting are fully updated before any value leaves
        the ledger, so a recipient calling back in sees the post-purchase
        state.
        """
        with self._transaction('buy_item'):
            if _require_uint(payment, 'payment') < 0:
                raise ValueError("payment must not be negative")
            self._escrow(caller, payment)

            item = self._existing_item(item_id)
            valid_quantity(quantity)
            if not item.active:
                raise ItemNotActive(item_id)
            if caller == item.seller:
                raise CannotBuyOwnItem(item_id, caller)
            if item.quantity < quantity:
                raise InsufficientQuantity(item_id, quantity, item.quantity)
            total_price = item.price * quantity
            if payment < total_price:
                raise InsufficientPayment(total_price, payment)

            self._assign(item, 'quantity', item.quantity - quantity)
            if item.quantity == 0:
                self._assign(item, 'active', False)
                self.events.emit(ItemDeactivated(item_id))

            platform_fee = total_price * self._platform_fee_percent // 100
            if platform_fee > total_price:
                raise FeeOverflow(total_price, platform_fee)
            seller_amount = total_price - platform_fee

            stats = self._stats_for(item.seller)
            self._assign(stats, 'items_sold', stats.items_sold + quantity)
            self._assign(stats, 'total_revenue', stats.total_revenue + seller_amount)
            self._assign(self, '_total_sales', self._total_sales + quantity)
            self._assign(self, '_total_revenue', self._total_revenue + total_price)

            self._append(self._list_for(self._purchase_history, caller), item_id)

            self._send(item.seller, seller_amount)
            if payment > total_price:
                self._send(caller, payment - total_price)

            self.events.emit(ItemPurchased(item_id, caller, item.seller, quantity, total_price))
            logger.info(
                f"Item {item_id}: {caller} bought {quantity} for {total_price} "
                f"(seller {seller_amount}, fee {platform_fee})"
            )

    # Administration

    def current_admin(self) -> str:
        return self.access.current_admin()

    def transfer_admin(self, caller: str, new_admin: str):
        with self._transaction('transfer_admin'):
            self.access.transfer_admin(caller, new_admin)

    def set_platform_fee_percent(self, caller: str, new_percent: int):
        with self._transaction('set_platform_fee_percent'):
            self.access.require_admin(caller)
            if _require_uint(new_percent, 'new_percent') < 0:
                raise ValueError("new_percent must not be negative")
            if new_percent > 100:
                logger.warning(f"Platform fee of {new_percent}% exceeds the sale price")

            self._assign(self, '_platform_fee_percent', new_percent)
            logger.info(f"Platform fee set to {new_percent}%")

    def withdraw_platform_fees(self, caller: str) -> int:
        """Send everything the ledger holds to the admin; returns the amount"""
        with self._transaction('withdraw_platform_fees'):
            self.access.require_admin(caller)
            amount = self.ledger_balance()
            self._send(caller, amount)
            logger.info(f"Withdrew {amount} in platform fees to {caller}")
        return amount

    # Reads

    def get_item(self, item_id: int) -> Item:
        return replace(self._existing_item(item_id))

    def get_seller_items(self, seller: str) -> List[int]:
        return list(self._seller_items.get(seller, []))

    def get_purchase_history(self, buyer: str) -> List[int]:
        return list(self._purchase_history.get(buyer, []))

    def get_seller_stats(self, seller: str) -> SellerReport:
        stats = self._seller_stats.get(seller, SellerStats())
        return build_seller_report(stats.items_listed, stats.items_sold, stats.total_revenue)

    def get_marketplace_report(self) -> SalesReport:
        total_listed = self._next_item_id - 1
        active_listings = 0
        for item_id in range(1, self._next_item_id):
            item = self._items[item_id]
            if item.active and item.quantity > 0:
                active_listings += 1
        return build_sales_report(self._total_sales, self._total_revenue,
                                  total_listed, active_listings)

    def get_average_sale_price(self) -> int:
        return average_price(self._total_revenue, self._total_sales)

    def get_platform_fee_percent(self) -> int:
        return self._platform_fee_percent

    def ledger_balance(self) -> int:
        """Funds currently held by the ledger: escrow in flight plus fees"""
        return self.transport.balance_of(self.address)
