"""
Error types raised by the marketplace ledger

Every failure aborts the whole operation: state, balances and staged events
are restored before the error reaches the caller.
"""


class MarketplaceError(Exception):
    """Base class for every error a ledger operation can raise"""
    pass


class InvalidPrice(MarketplaceError):
    """Raised when a listing price is zero"""

    def __init__(self, price):
        self.price = price
        super().__init__(f"Invalid price: {price}")


class InvalidQuantity(MarketplaceError):
    """Raised when a listing or purchase quantity is zero"""

    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity}")


class ItemNotFound(MarketplaceError):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class NotItemOwner(MarketplaceError):
    def __init__(self, item_id, caller):
        self.item_id = item_id
        self.caller = caller
        super().__init__(f"{caller} does not own item {item_id}")


class ItemNotActive(MarketplaceError):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item {item_id} is not active")


class InsufficientQuantity(MarketplaceError):
    def __init__(self, item_id, requested, available):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Item {item_id}: requested {requested}, only {available} available"
        )


class InsufficientPayment(MarketplaceError):
    def __init__(self, required, paid):
        self.required = required
        self.paid = paid
        super().__init__(f"Payment of {paid} is below the required {required}")


class CannotBuyOwnItem(MarketplaceError):
    def __init__(self, item_id, caller):
        self.item_id = item_id
        self.caller = caller
        super().__init__(f"{caller} cannot buy their own item {item_id}")


class TransferFailed(MarketplaceError):
    """Raised when an outbound value transfer is refused or errors"""

    def __init__(self, recipient, amount, reason=None):
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        message = f"Transfer of {amount} to {recipient} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FeeOverflow(MarketplaceError):
    """Raised when the platform fee is larger than the sale total"""

    def __init__(self, total_price, platform_fee):
        self.total_price = total_price
        self.platform_fee = platform_fee
        super().__init__(
            f"Platform fee {platform_fee} exceeds total price {total_price}"
        )


class NotAdmin(MarketplaceError):
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"{caller} is not the admin")


class InvalidAddress(MarketplaceError):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class TransportError(Exception):
    """Raised by value-transfer backends when a transfer cannot be completed"""
    pass
