"""Dataclasses shared by the parser, the engine and the control boundary."""

from __future__ import annotations

import datetime as _dt
import enum
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from .utils import now_utc

if TYPE_CHECKING:
    from .notifier import Alert


@dataclass(frozen=True)
class ProductDescriptor:
    product_id: str
    title: str = "Unknown"
    brand: str = "Unknown"
    price: Optional[str] = None
    original_price: Optional[str] = None
    discount: Optional[str] = None
    image_url: Optional[str] = None
    in_stock: bool = False
    product_type: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SizeOption:
    label: str
    variant_id: Optional[str] = None


@dataclass(frozen=True)
class SizeStock:
    in_stock: bool = False
    quantity: int = 0


OUT_OF_STOCK = SizeStock(in_stock=False, quantity=0)

SizeMapping = Dict[str, SizeOption]
SizeAvailability = Dict[str, SizeStock]


@dataclass(frozen=True)
class ProductSnapshot:
    descriptor: ProductDescriptor
    size_mapping: SizeMapping
    availability: SizeAvailability

    @property
    def available_sizes(self) -> List[str]:
        """Size ids currently in stock, in upstream order."""
        return [size_id for size_id, stock in self.availability.items() if stock.in_stock]

    def label_for(self, size_id: str) -> str:
        option = self.size_mapping.get(size_id)
        return option.label if option else size_id


class WatchMode(str, enum.Enum):
    SIZES = "watchSizes"
    ANY = "watchAll"


@dataclass
class WatchEntry:
    product_id: str
    mode: WatchMode
    watched_sizes: Set[str] = field(default_factory=set)
    had_any_size: bool = False
    notified_sizes: Set[str] = field(default_factory=set)
    # Sizes whose stock-appeared edge fired but whose reservation failed.
    retry_sizes: Set[str] = field(default_factory=set)
    restock_retry: bool = False
    previous_availability: SizeAvailability = field(default_factory=dict)
    last_descriptor: Optional[ProductDescriptor] = None
    last_size_mapping: SizeMapping = field(default_factory=dict)
    added_at: _dt.datetime = field(default_factory=now_utc)
    last_checked: Optional[_dt.datetime] = None
    last_error: Optional[str] = None

    @property
    def key(self) -> str:
        return str(self.product_id)

    @property
    def watch_any(self) -> bool:
        return self.mode is WatchMode.ANY

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "productId": self.product_id,
            "mode": self.mode.value,
            "watchAll": self.watch_any,
            "productInfo": self.last_descriptor.to_dict() if self.last_descriptor else None,
            "sizeMapping": size_mapping_to_dict(self.last_size_mapping),
            "watchedSizes": sorted(self.watched_sizes),
            "hadSizes": self.had_any_size,
            "currentStock": availability_to_dict(self.previous_availability),
            "notified": sorted(self.notified_sizes),
            "pendingRetry": sorted(self.retry_sizes),
            "addedAt": self.added_at.isoformat(),
            "lastChecked": self.last_checked.isoformat() if self.last_checked else None,
            "lastError": self.last_error,
        }


@dataclass
class HistoryEntry:
    product_id: str
    title: str
    brand: str
    price: Optional[str]
    original_price: Optional[str]
    discount: Optional[str]
    image_url: Optional[str]
    size_mapping: SizeMapping
    added_at: _dt.datetime = field(default_factory=now_utc)
    last_monitored: _dt.datetime = field(default_factory=now_utc)

    def to_dict(self, is_currently_monitored: bool = False) -> dict:
        return {
            "key": str(self.product_id),
            "productId": self.product_id,
            "title": self.title,
            "brand": self.brand,
            "price": self.price,
            "originalPrice": self.original_price,
            "discount": self.discount,
            "imageUrl": self.image_url,
            "sizeMapping": size_mapping_to_dict(self.size_mapping),
            "addedAt": self.added_at.isoformat(),
            "lastMonitored": self.last_monitored.isoformat(),
            "isCurrentlyMonitored": is_currently_monitored,
        }


@dataclass(frozen=True)
class CartResult:
    success: bool
    message: str = ""
    count: Optional[int] = None


@dataclass
class TransitionOutcome:
    """What a single evaluation did, for logging and for the add response."""

    reserved: List[str] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    # Built during evaluation, delivered by the caller once state is stored.
    alerts: List[Alert] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.reserved) + len(self.failed)


@dataclass
class AddResult:
    key: str
    mode: WatchMode
    in_stock: bool
    message: str
    watched_sizes: List[str]
    available_sizes: List[Dict[str, str]]
    already_in_stock: List[str]

    def to_dict(self) -> dict:
        return {
            "success": True,
            "key": self.key,
            "message": self.message,
            "mode": self.mode.value,
            "inStock": self.in_stock,
            "watchedSizes": self.watched_sizes,
            "availableSizes": self.available_sizes,
            "alreadyInStock": self.already_in_stock,
        }


def size_mapping_to_dict(mapping: SizeMapping) -> dict:
    return {
        size_id: {"size": option.label, "productId": option.variant_id}
        for size_id, option in mapping.items()
    }


def availability_to_dict(availability: SizeAvailability) -> dict:
    return {
        size_id: {"inStock": stock.in_stock, "quantity": stock.quantity}
        for size_id, stock in availability.items()
    }


__all__ = [
    "ProductDescriptor",
    "SizeOption",
    "SizeStock",
    "OUT_OF_STOCK",
    "SizeMapping",
    "SizeAvailability",
    "ProductSnapshot",
    "WatchMode",
    "WatchEntry",
    "HistoryEntry",
    "CartResult",
    "TransitionOutcome",
    "AddResult",
    "size_mapping_to_dict",
    "availability_to_dict",
]
