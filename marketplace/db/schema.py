from typing import Optional, List, Dict, Any
from datetime import datetime, date
import uuid
from sqlmodel import SQLModel, Field, Relationship, JSON, UniqueConstraint
from enum import Enum


class UserRole(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    PENDING = "PENDING"      # Sellers wait here until an admin approves them
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class RFQStatus(str, Enum):
    OPEN = "OPEN"
    QUOTED = "QUOTED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"  # Never stored; derived from expires_at


class CertificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class NotificationType(str, Enum):
    ORDER_STATUS = "ORDER_STATUS"
    RFQ_RECEIVED = "RFQ_RECEIVED"
    QUOTE_RECEIVED = "QUOTE_RECEIVED"
    CERTIFICATION_UPDATE = "CERTIFICATION_UPDATE"
    GENERAL = "GENERAL"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VERIFY = "VERIFY"
    STATUS_CHANGE = "STATUS_CHANGE"
    BROADCAST = "BROADCAST"


class TimestampMixin(SQLModel):
    """
    A foundational mixin that provides standard audit timestamps for database records.
    Every entity inheriting from this mixin tracks when it was originally created
    and when it was last modified.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="The exact UTC timestamp when this record was first persisted. Example: '2024-05-02 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="The exact UTC timestamp when this record was last modified. Updates automatically."
    )


# ==========================================================================
# ACCOUNTS
# ==========================================================================

class User(TimestampMixin, SQLModel, table=True):
    """
    Represents a marketplace account.
    The role decides which profile the user may own: Buyers own a BuyerProfile,
    Sellers own a SellerProfile, Admins own neither.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="The unique identifier for the user."
    )
    email: str = Field(
        unique=True,
        index=True,
        description="The login email address. Example: 'grower@greenfields.com'"
    )
    hashed_password: str = Field(
        description="The bcrypt hash of the user's password. Never store plain text."
    )
    role: UserRole = Field(
        default=UserRole.BUYER,
        index=True,
        description="Account role. Example: 'SELLER'"
    )
    status: UserStatus = Field(
        default=UserStatus.ACTIVE,
        index=True,
        description="Account lifecycle status. Sellers start as 'PENDING'."
    )

    buyer_profile: Optional["BuyerProfile"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"uselist": False,
                                "cascade": "all, delete-orphan"}
    )
    seller_profile: Optional["SellerProfile"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"uselist": False,
                                "cascade": "all, delete-orphan"}
    )
    cart_items: List["CartItem"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"})
    orders: List["Order"] = Relationship(back_populates="buyer")
    rfqs: List["RFQ"] = Relationship(back_populates="buyer")
    certifications: List["Certification"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"foreign_keys": "[Certification.user_id]"}
    )
    notifications: List["Notification"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class BuyerProfile(TimestampMixin, SQLModel, table=True):
    """
    Contact and company details of a Buyer.
    Only the company and location are ever shown to Sellers who have not
    yet quoted on one of the buyer's RFQs.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", unique=True, index=True)

    first_name: str
    last_name: str
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    company_type: Optional[str] = Field(
        default=None,
        description="'Individual', 'Small Business' or 'Enterprise'."
    )

    user: User = Relationship(back_populates="buyer_profile")


class SellerCategoryLink(TimestampMixin, SQLModel, table=True):
    """
    Many-to-many pivot between Seller Profiles and the Categories they trade in.
    Used to target RFQ notifications.
    """
    seller_id: uuid.UUID = Field(
        foreign_key="sellerprofile.id",
        primary_key=True
    )
    category_id: uuid.UUID = Field(
        foreign_key="category.id",
        primary_key=True
    )


class SellerProfile(TimestampMixin, SQLModel, table=True):
    """
    The business identity of a Seller.
    'is_verified' is granted by an admin and is independent of the account
    status: it gates product creation and public visibility.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", unique=True, index=True)

    company_name: str = Field(
        index=True,
        description="Trading name. Example: 'Green Fields Farm Co.'"
    )
    contact_person: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    established_year: Optional[int] = None
    employee_count: Optional[str] = None

    # Private: never exposed on the public profile
    business_license: Optional[str] = None
    tax_id: Optional[str] = None

    is_verified: bool = Field(
        default=False,
        description="Set by an admin when the seller account is approved."
    )
    verification_notes: Optional[str] = None

    user: User = Relationship(back_populates="seller_profile")
    categories: List["Category"] = Relationship(
        back_populates="sellers", link_model=SellerCategoryLink)
    products: List["Product"] = Relationship(back_populates="seller")
    quotes: List["Quote"] = Relationship(back_populates="seller")


class Category(TimestampMixin, SQLModel, table=True):
    """
    A product category. Categories may nest one level or more via parent_id.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, description="Example: 'Fresh Vegetables'")
    description: Optional[str] = None
    parent_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="category.id")
    is_active: bool = Field(default=True)

    parent: Optional["Category"] = Relationship(
        back_populates="children",
        sa_relationship_kwargs={"remote_side": "Category.id"}
    )
    children: List["Category"] = Relationship(back_populates="parent")
    sellers: List["SellerProfile"] = Relationship(
        back_populates="categories", link_model=SellerCategoryLink)
    products: List["Product"] = Relationship(back_populates="category")


# ==========================================================================
# CATALOGUE
# ==========================================================================

class Product(TimestampMixin, SQLModel, table=True):
    """
    A listing owned by exactly one Seller.
    Products are never hard-deleted: 'is_active=False' hides them from the
    storefront while keeping order history intact.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    seller_id: uuid.UUID = Field(foreign_key="sellerprofile.id", index=True)
    category_id: uuid.UUID = Field(foreign_key="category.id", index=True)

    name: str = Field(index=True, description="Example: 'Heirloom Tomatoes'")
    description: str
    short_description: Optional[str] = None
    sku: str = Field(unique=True, index=True,
                     description="Seller stock keeping unit. Example: 'GF-TOM-001'")

    retail_price: float = Field(description="Unit price charged at checkout.")
    wholesale_price: Optional[float] = None
    min_order_quantity: int = Field(default=1)
    unit: str = Field(description="Selling unit. Example: 'kg'")
    stock_quantity: int = Field(default=0)

    tags: List[str] = Field(default_factory=list, sa_type=JSON)
    storage_info: Optional[str] = None
    shelf_life: Optional[str] = None
    origin: Optional[str] = None
    harvest_date: Optional[date] = None

    is_organic: bool = Field(default=True)
    is_fair_trade: bool = Field(default=False)
    is_gmo_free: bool = Field(default=True)

    is_active: bool = Field(default=True, index=True,
                            description="Soft delete flag.")

    seller: SellerProfile = Relationship(back_populates="products")
    category: Category = Relationship(back_populates="products")
    certifications: List["ProductCertificationLink"] = Relationship(
        back_populates="product", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


# ==========================================================================
# CHECKOUT
# ==========================================================================

class CartItem(TimestampMixin, SQLModel, table=True):
    """
    A line in a Buyer's cart. Exactly one row per (user, product).
    """
    __table_args__ = (
        UniqueConstraint("user_id", "product_id",
                         name="uq_cartitem_user_product"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    product_id: uuid.UUID = Field(foreign_key="product.id")
    quantity: int = Field(default=1)

    user: User = Relationship(back_populates="cart_items")
    product: Product = Relationship()


class Order(TimestampMixin, SQLModel, table=True):
    """
    An immutable purchase snapshot created from a cart.
    Only the status moves after creation.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_number: str = Field(
        unique=True,
        index=True,
        description="Display identifier. Example: 'ORD-1714650000000-042'"
    )
    buyer_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)

    subtotal: float
    tax: float
    shipping: float
    total: float

    shipping_address: Dict[str, Any] = Field(
        default_factory=dict, sa_type=JSON)
    billing_address: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    payment_method: Optional[str] = None
    payment_status: str = Field(default="pending")
    notes: Optional[str] = None

    buyer: User = Relationship(back_populates="orders")
    items: List["OrderItem"] = Relationship(
        back_populates="order", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class OrderItem(SQLModel, table=True):
    """
    A frozen order line. Prices are copied from the product at checkout and
    never follow later price changes.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="order.id", index=True)
    product_id: uuid.UUID = Field(foreign_key="product.id", index=True)
    quantity: int
    unit_price: float
    total_price: float
    is_wholesale: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    order: Order = Relationship(back_populates="items")
    product: Product = Relationship()


# ==========================================================================
# NEGOTIATION
# ==========================================================================

class RFQ(TimestampMixin, SQLModel, table=True):
    """
    A Request for Quote posted by a Buyer.
    Expiry is never written to 'status'; it is derived from 'expires_at'
    each time the RFQ is read or written.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    rfq_number: str = Field(
        unique=True,
        index=True,
        description="Display identifier. Example: 'RFQ-1714650000000-917'"
    )
    buyer_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    category_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="category.id", index=True)

    title: str
    description: str
    quantity: int
    unit: str
    budget: Optional[float] = None
    location: Optional[str] = None
    delivery_date: Optional[datetime] = None
    expires_at: datetime = Field(index=True)
    requirements: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)

    status: RFQStatus = Field(default=RFQStatus.OPEN, index=True)

    buyer: User = Relationship(back_populates="rfqs")
    category: Optional[Category] = Relationship()
    quotes: List["Quote"] = Relationship(
        back_populates="rfq", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class Quote(TimestampMixin, SQLModel, table=True):
    """
    A Seller's bid against one RFQ. One quote per seller per RFQ.
    """
    __table_args__ = (
        UniqueConstraint("rfq_id", "seller_id", name="uq_quote_rfq_seller"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    rfq_id: uuid.UUID = Field(foreign_key="rfq.id", index=True)
    seller_id: uuid.UUID = Field(foreign_key="sellerprofile.id", index=True)

    price: float
    quantity: int
    unit: str
    delivery_time: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    is_selected: bool = Field(default=False)

    rfq: RFQ = Relationship(back_populates="quotes")
    seller: SellerProfile = Relationship(back_populates="quotes")


# ==========================================================================
# TRUST
# ==========================================================================

class Certification(TimestampMixin, SQLModel, table=True):
    """
    A third-party credential (e.g. an organic certificate) claimed by a Seller.
    Only VERIFIED certifications can be attached to products.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)

    name: str = Field(description="Example: 'USDA Organic'")
    description: Optional[str] = None
    issuer: str = Field(description="Example: 'Oregon Tilth'")
    issue_date: date
    expiry_date: Optional[date] = None
    document_url: str

    status: CertificationStatus = Field(
        default=CertificationStatus.PENDING, index=True)
    verified_by: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None

    user: User = Relationship(
        back_populates="certifications",
        sa_relationship_kwargs={"foreign_keys": "Certification.user_id"}
    )
    products: List["ProductCertificationLink"] = Relationship(
        back_populates="certification")


class ProductCertificationLink(SQLModel, table=True):
    """
    Pivot table attaching verified certifications to products.
    The composite primary key makes each (product, certification) pair unique.
    """
    product_id: uuid.UUID = Field(foreign_key="product.id", primary_key=True)
    certification_id: uuid.UUID = Field(
        foreign_key="certification.id", primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    product: Product = Relationship(back_populates="certifications")
    certification: Certification = Relationship(back_populates="products")


# ==========================================================================
# MESSAGING & AUDIT
# ==========================================================================

class Notification(SQLModel, table=True):
    """
    Append-only per-user message. Written as a side effect of the other
    workflows; end users can only read, mark and delete their own.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    type: NotificationType = Field(default=NotificationType.GENERAL)
    title: str
    message: str
    data: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    user: User = Relationship(back_populates="notifications")


class AuditLog(SQLModel, table=True):
    """
    Trail of administrative actions (approvals, verifications, broadcasts).
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    actor_user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    entity_type: str = Field(description="Example: 'Certification'")
    entity_id: Optional[uuid.UUID] = None
    action: AuditAction
    changes: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
