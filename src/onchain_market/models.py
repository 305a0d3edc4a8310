"""
Data models for marketplace listings, seller accounting and reports
"""
from dataclasses import dataclass

# Sentinel identity: an item whose seller is this does not exist
ZERO_ADDRESS = ''

CATEGORY_SIZE = 32


def encode_category(label: str) -> bytes:
    """Encode a short label as a fixed-size, NUL-padded category tag"""
    raw = label.encode('utf-8')
    # Last byte stays NUL so the tag always decodes back to a string
    if len(raw) > CATEGORY_SIZE - 1:
        raise ValueError(f"Category label too long: {label!r}")
    return raw.ljust(CATEGORY_SIZE, b'\x00')


def decode_category(tag: bytes) -> str:
    """Decode a category tag produced by encode_category"""
    if len(tag) != CATEGORY_SIZE:
        raise ValueError(f"Category tag must be {CATEGORY_SIZE} bytes")
    return tag.rstrip(b'\x00').decode('utf-8')


@dataclass
class Item:
    """A single listing"""
    id: int
    name: str
    description: str
    price: int  # Smallest native-currency unit, per item
    quantity: int
    seller: str
    active: bool
    category: bytes  # Fixed-size tag, see encode_category

    @property
    def exists(self) -> bool:
        return self.seller != ZERO_ADDRESS


@dataclass
class SellerStats:
    """Cumulative per-seller counters"""
    items_listed: int = 0
    items_sold: int = 0
    total_revenue: int = 0  # Net of platform fees


@dataclass(frozen=True)
class SalesReport:
    total_sales: int
    total_revenue: int  # Gross, including platform fees
    total_items_listed: int
    active_listings: int


@dataclass(frozen=True)
class SellerReport:
    items_listed: int
    items_sold: int
    total_revenue: int
