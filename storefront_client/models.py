"""Pydantic models for storefront wire data.

Field names follow the backend's JSON (``_id``, ``totalAmount``, ``zipCode``)
through aliases; Python attributes stay snake_case.
"""
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for models that round-trip through the REST API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DeliveryMethod(str, Enum):
    STANDARD = "standard"
    PRIORITY = "priority"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    GCASH = "gcash"
    PAYMAYA = "paymaya"

    @property
    def requires_details(self) -> bool:
        return self is not PaymentMethod.CASH_ON_DELIVERY

    @property
    def api_value(self) -> str:
        """Value the order endpoint accepts. E-wallets are recorded as bank transfers."""
        if self.requires_details:
            return "bank_transfer"
        return self.value


class Product(WireModel):
    id: str = Field(alias="_id")
    name: str
    description: str = ""
    price: float
    category: Optional[str] = None
    stock: int = 0
    sizes: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    featured: bool = False


UNAVAILABLE_PRODUCT = "Product no longer available"


def _product_id(product: Optional[Union[Product, str]]) -> Optional[str]:
    if isinstance(product, Product):
        return product.id
    return product


def _product_name(product: Optional[Union[Product, str]]) -> str:
    if product is None:
        return UNAVAILABLE_PRODUCT
    if isinstance(product, Product):
        return product.name
    return product


class CartItem(WireModel):
    id: str = Field(alias="_id")
    product: Optional[Union[Product, str]] = None  # null once the product is deleted
    price: float  # snapshotted when the item was added
    quantity: int = Field(ge=1)
    size: Optional[str] = None
    color: Optional[str] = None

    @property
    def product_id(self) -> Optional[str]:
        return _product_id(self.product)

    @property
    def product_name(self) -> str:
        return _product_name(self.product)


class Cart(WireModel):
    items: list[CartItem] = Field(default_factory=list)
    total_amount: float = Field(default=0, alias="totalAmount")

    @property
    def is_empty(self) -> bool:
        return not self.items


class Address(WireModel):
    street: str = ""
    city: str = ""
    state: str = ""  # region
    zip_code: str = Field(default="", alias="zipCode")
    country: str = "Philippines"

    def display(self) -> str:
        return f"{self.street}, {self.city}, {self.state}, {self.zip_code}, {self.country}"


class PaymentDetails(WireModel):
    account_name: str = Field(default="", alias="accountName")
    account_number: str = Field(default="", alias="accountNumber")
    reference_number: str = Field(default="", alias="referenceNumber")
    date_created: Optional[date] = Field(default=None, alias="dateCreated")


class PaymentInfo(WireModel):
    """Payment details as recorded on an order."""
    account_name: Optional[str] = Field(default=None, alias="accountName")
    account_number: Optional[str] = Field(default=None, alias="accountNumber")
    reference_number: Optional[str] = Field(default=None, alias="referenceNumber")
    date_created: Optional[datetime] = Field(default=None, alias="dateCreated")
    verification_status: Optional[str] = Field(default=None, alias="verificationStatus")


class OrderItem(WireModel):
    product: Optional[Union[Product, str]] = None
    quantity: int
    price: float
    size: Optional[str] = None
    color: Optional[str] = None

    @property
    def product_name(self) -> str:
        return _product_name(self.product)


class DeliveryInfo(WireModel):
    service: Optional[str] = None
    driver_name: Optional[str] = Field(default=None, alias="driverName")
    contact_number: Optional[str] = Field(default=None, alias="contactNumber")
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")
    tracking_link: Optional[str] = Field(default=None, alias="trackingLink")
    estimated_delivery: Optional[datetime] = Field(default=None, alias="estimatedDelivery")


class Order(WireModel):
    id: str = Field(alias="_id")
    items: list[OrderItem] = Field(default_factory=list)
    shipping_address: Optional[Address] = Field(default=None, alias="shippingAddress")
    payment_method: str = Field(alias="paymentMethod")
    payment_info: Optional[PaymentInfo] = Field(default=None, alias="paymentInfo")
    delivery_fee: float = Field(default=0, alias="deliveryFee")
    total_amount: float = Field(alias="totalAmount")
    order_status: str = Field(default="pending", alias="orderStatus")
    payment_status: str = Field(default="pending", alias="paymentStatus")
    delivery_info: Optional[DeliveryInfo] = Field(default=None, alias="deliveryInfo")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class User(WireModel):
    id: str = Field(alias="_id", validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: str = ""
    role: str = "customer"
    address: Optional[Address] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Message(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    sender: str  # "user" or "admin"
    text: str
    read: bool = False
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class Conversation(WireModel):
    id: str = Field(alias="_id")
    title: str = "Customer Support"
    status: str = "active"
    messages: list[Message] = Field(default_factory=list)
    last_message: Optional[datetime] = Field(default=None, alias="lastMessage")

    @property
    def unread_from_support(self) -> int:
        return sum(1 for m in self.messages if m.sender == "admin" and not m.read)
