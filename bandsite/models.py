"""
Hope & Failure Band Site - API Models

Pydantic models for the shared types exchanged over the JSON API and the
request bodies of the admin and checkout endpoints.  The wire format keeps
the camelCase field names the site has always used (``ticketLink``,
``youtubeId``, ``isInstrumental`` ...) while Python code works with
snake_case attributes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Shared types
# ---------------------------------------------------------------------------
class InventoryItem(CamelModel):
    id: str
    title: str
    price: float
    sizes: List[str] = Field(default_factory=list)
    inventory: Dict[str, int] = Field(default_factory=dict)


class Event(CamelModel):
    id: str
    title: str
    date: str
    time: str = ""
    venue: str
    location: str
    description: str = ""
    ticket_link: str = ""
    is_past: bool = False


class Video(CamelModel):
    id: str
    youtube_id: str
    title: str
    description: str = ""
    order: int = 0


class Song(CamelModel):
    id: str
    title: str
    lyrics: str = ""
    order: int = 0
    is_instrumental: bool = False


class PhotoCredit(CamelModel):
    name: str
    instagram: str = ""
    url: str = ""


class Bio(CamelModel):
    main_text: List[str] = Field(default_factory=list)
    band_image: str = ""
    past_members: List[str] = Field(default_factory=list)
    photography: List[PhotoCredit] = Field(default_factory=list)


class CartItem(CamelModel):
    id: str
    title: str = ""
    price: float = 0
    quantity: int = Field(1, gt=0)
    size: Optional[str] = None


class OrderData(CamelModel):
    order_id: str
    order_date: datetime
    customer_name: str = "Unknown"
    customer_email: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    subtotal: float = 0
    shipping: float = 0
    total: float = 0
    shipping_address: Optional[Dict[str, Any]] = None
    payment_status: str = ""
    stripe_session_id: str


# ---------------------------------------------------------------------------
# Admin request bodies
#
# Every admin body may carry the admin ``password``; it is consumed by the
# auth dependency and never stored.
# ---------------------------------------------------------------------------
class AdminRequest(CamelModel):
    password: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        """Return the explicitly supplied fields, without the password."""
        return self.model_dump(exclude_unset=True, exclude={"password"})


class EventCreate(AdminRequest):
    title: str = ""
    date: str = ""
    time: str = ""
    venue: str = ""
    location: str = ""
    description: str = ""
    ticket_link: str = ""

    def missing_fields(self) -> List[str]:
        required = ["title", "date", "venue", "location"]
        return [name for name in required if not getattr(self, name).strip()]


class EventUpdate(AdminRequest):
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    ticket_link: Optional[str] = None


class VideoCreate(AdminRequest):
    youtube_id: str = ""
    title: str = ""
    description: str = ""
    order: Optional[int] = None


class VideoUpdate(AdminRequest):
    youtube_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None


class SongCreate(AdminRequest):
    title: str = ""
    lyrics: str = ""
    order: Optional[int] = None
    is_instrumental: bool = False


class SongUpdate(AdminRequest):
    title: Optional[str] = None
    lyrics: Optional[str] = None
    order: Optional[int] = None
    is_instrumental: Optional[bool] = None


class BioUpdate(AdminRequest):
    main_text: Optional[List[str]] = None
    band_image: Optional[str] = None
    past_members: Optional[List[str]] = None
    photography: Optional[List[PhotoCredit]] = None


class InventoryUpdate(AdminRequest):
    product_id: Optional[str] = None
    size: Optional[str] = None
    quantity: Optional[int] = None

    @field_validator("quantity")
    @classmethod
    def _non_negative(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("quantity must be a valid non-negative number")
        return value


# ---------------------------------------------------------------------------
# Shop request bodies
# ---------------------------------------------------------------------------
class DecrementItem(CamelModel):
    id: str
    size: Optional[str] = None
    quantity: int = Field(..., gt=0)


class DecrementRequest(CamelModel):
    items: List[DecrementItem]


class CheckoutRequest(CamelModel):
    items: List[CartItem] = Field(default_factory=list)
    customer_email: str = ""


class ProcessOrderRequest(CamelModel):
    session_id: str = ""
