"""
On-chain Marketplace Ledger Package
"""
from .ledger import MarketplaceLedger
from .access import AccessControl
from .transport import ValueTransport, LocalBank
from .gateway import SettlementGateway
from .events import EventLog
from .models import Item, SellerStats, SalesReport, SellerReport, ZERO_ADDRESS, encode_category, decode_category
from .config import Config, ConfigurationError, get_config
from .exceptions import MarketplaceError, TransferFailed, TransportError

__all__ = [
    'MarketplaceLedger', 'AccessControl', 'ValueTransport', 'LocalBank', 'SettlementGateway',
    'EventLog', 'Item', 'SellerStats', 'SalesReport', 'SellerReport', 'ZERO_ADDRESS',
    'encode_category', 'decode_category', 'Config', 'ConfigurationError', 'get_config',
    'MarketplaceError', 'TransferFailed', 'TransportError',
]
