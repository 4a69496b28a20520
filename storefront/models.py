"""Storefront data models: catalog, cart, checkout, orders and profile."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CURRENCY = "USD"
DEFAULT_ORDER_STATUS = "processing"

SortMode = Literal["featured", "price-asc", "price-desc", "newest"]
CheckoutStep = Literal["cart", "shipping", "payment", "review", "confirmation"]
SubmissionStatus = Literal["idle", "submitting", "success", "error"]
PaymentMethodKind = Literal["card", "paypal", "apple-pay"]

CHECKOUT_STEPS: tuple[str, ...] = ("cart", "shipping", "payment", "review", "confirmation")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductVariant(BaseModel):
    """A purchasable sub-option of a product (size, color...)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: Optional[Decimal] = None
    sku: Optional[str] = None
    stock: Optional[int] = None
    option_values: dict[str, str] = Field(default_factory=dict)


class Product(BaseModel):
    """A catalog product as served by the backend."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str
    price: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    description: Optional[str] = None
    image_url: Optional[str] = None
    gallery: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    featured: bool = False
    rating: Optional[float] = None
    created_at: Optional[datetime] = None
    inventory_status: Optional[str] = None
    variants: list[ProductVariant] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Product":
        """Map a products row (with embedded variants) onto the model, filling defaults."""
        image_url = row.get("image_url") or None
        gallery = row.get("gallery")
        if not isinstance(gallery, list):
            gallery = [image_url] if image_url else []
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            slug=row.get("slug") or str(row["id"]),
            price=row.get("price") if row.get("price") is not None else Decimal("0"),
            currency=row.get("currency") or DEFAULT_CURRENCY,
            description=row.get("description"),
            image_url=image_url,
            gallery=gallery,
            category=row.get("category") or None,
            tags=row.get("tags") or [],
            featured=bool(row.get("featured")),
            rating=row.get("rating"),
            created_at=row.get("created_at"),
            inventory_status=row.get("inventory_status"),
            variants=[
                ProductVariant(**{**variant, "option_values": variant.get("option_values") or {}})
                for variant in row.get("variants") or []
            ],
            metadata=row.get("metadata") or {},
        )

    @property
    def is_featured(self) -> bool:
        return self.featured or "featured" in self.tags

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


def cart_item_key(product_id: str, variant_id: Optional[str] = None) -> str:
    """Identity of a cart line: one entry per (product, variant) pair."""
    return f"{product_id}:{variant_id}" if variant_id else product_id


class CartItem(BaseModel):
    """A cart line with the unit price captured when it was added."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: Decimal
    product: Product

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CatalogFilters(BaseModel):
    """Catalog view criteria. Not persisted."""
    model_config = ConfigDict(frozen=True)

    search_term: str = ""
    category: str = "all"
    price_range: tuple[Decimal, Decimal] = (Decimal("0"), Decimal("2000"))
    sort: SortMode = "featured"
    tags: tuple[str, ...] = ()


class ShippingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    phone: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class PaymentDetails(BaseModel):
    """Payment form fields. Only `method` is ever sent to the backend."""
    model_config = ConfigDict(frozen=True)

    method: PaymentMethodKind = "card"
    cardholder: str = ""
    card_number: str = ""
    expiry: str = ""
    cvc: str = ""


class PendingRef(BaseModel):
    """Marks an optimistic order that has no backend id yet."""
    model_config = ConfigDict(frozen=True)

    token: str = Field(default_factory=lambda: uuid4().hex)


class OrderSummary(BaseModel):
    """An order as shown in the account history and checkout confirmation."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    pending_ref: Optional[PendingRef] = None
    status: str = DEFAULT_ORDER_STATUS
    total: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    created_at: datetime = Field(default_factory=utcnow)
    items: tuple[CartItem, ...] = ()

    @property
    def is_pending(self) -> bool:
        return self.pending_ref is not None

    @classmethod
    def from_row(
        cls,
        row: dict[str, Any],
        items: tuple[CartItem, ...] = (),
        default_total: Decimal = Decimal("0"),
    ) -> "OrderSummary":
        total = row.get("total")
        return cls(
            id=str(row["id"]),
            status=row.get("status") or DEFAULT_ORDER_STATUS,
            total=total if total is not None else default_total,
            currency=row.get("currency") or DEFAULT_CURRENCY,
            created_at=row.get("created_at") or utcnow(),
            items=items,
        )


class Profile(BaseModel):
    """The signed-in customer, mirrored from the auth session."""
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
