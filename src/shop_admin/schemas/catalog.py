from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ResourceId = Union[int, str]


class CamelModel(BaseModel):
    """Base for payloads exchanged with the API in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ShopInfo(CamelModel):
    name: str = ""
    description: str = ""
    logo: str = ""
    logo_url: str = ""
    primary_color: str = "#000000"
    secondary_color: str = "#ffffff"
    text_color: str = "#ffffff"
    background_color: str = "#ffffff"
    background_image: str = ""


class ContactInfo(CamelModel):
    order_link: str = ""
    order_text: str = ""
    email: str = ""
    phone: str = ""


class SocialMediaLink(CamelModel):
    id: Optional[ResourceId] = None
    name: str = ""
    emoji: str = ""
    url: str = ""
    color: str = ""


class Category(CamelModel):
    id: Optional[ResourceId] = None
    name: str = ""
    emoji: str = ""
    description: str = ""


class Farm(CamelModel):
    id: Optional[ResourceId] = None
    name: str = ""
    emoji: str = ""
    description: str = ""


class Page(CamelModel):
    id: Optional[ResourceId] = None
    name: str = ""
    href: str = ""
    is_default: bool = False


class AdminSettings(CamelModel):
    categories_tab_name: str = ""
    farms_tab_name: str = ""
    categories_button_text: str = ""
    farms_button_text: str = ""


class ProductVariant(CamelModel):
    name: str = ""
    price: float = 0.0
    size: str = ""

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0.0
        return value

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, value: Any) -> Any:
        return "" if value is None else str(value)


class Product(CamelModel):
    id: Optional[ResourceId] = None
    name: str = ""
    description: str = ""
    image: str = ""
    images: List[str] = Field(default_factory=list)
    video: str = ""
    # category and farm reference entries by name, not by id
    category: str = ""
    farm: Optional[str] = None
    variants: List[ProductVariant] = Field(default_factory=list)
    popular: bool = False
    order_link: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("image", "video", "description", "category", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_flags(cls, data: Any) -> Any:
        if isinstance(data, dict) and "popular" not in data and "is_popular" in data:
            data = dict(data)
            data["popular"] = bool(data.get("is_popular"))
        return data


def _unique_by_id(items: List[Any], label: str) -> List[Any]:
    seen: set[str] = set()
    unique: List[Any] = []
    for item in items:
        if item.id is None:
            unique.append(item)
            continue
        key = str(item.id)
        if key in seen:
            logger.warning("Dropping duplicate %s id=%s", label, item.id)
            continue
        seen.add(key)
        unique.append(item)
    return unique


class Configuration(CamelModel):
    """The aggregate document served by ``GET /admin/config``."""

    shop_info: ShopInfo = Field(default_factory=ShopInfo)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    social_media_links: List[SocialMediaLink] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    farms: List[Farm] = Field(default_factory=list)
    pages: List[Page] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)
    admin_settings: AdminSettings = Field(default_factory=AdminSettings)
    page_content: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # null sections fall back to their defaults
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @model_validator(mode="after")
    def enforce_unique_ids(self) -> "Configuration":
        self.social_media_links = _unique_by_id(self.social_media_links, "social link")
        self.categories = _unique_by_id(self.categories, "category")
        self.farms = _unique_by_id(self.farms, "farm")
        self.pages = _unique_by_id(self.pages, "page")
        self.products = _unique_by_id(self.products, "product")
        return self

    @property
    def popular_products(self) -> List[Product]:
        return [product for product in self.products if product.popular]


class VariantDraft(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    price: float = Field(ge=0)
    size: str = ""

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, value: Any) -> Any:
        return "" if value is None else str(value)


class ProductDraft(BaseModel):
    """Validated product payload for create/update calls.

    Blank variant rows (no name or no price) are discarded first, the same
    way the product editor trims its form before submitting.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    variants: Optional[List[VariantDraft]] = None

    @field_validator("variants", mode="before")
    @classmethod
    def drop_blank_variants(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, list):
            raise ValueError("variants must be a list")
        kept = []
        for variant in value:
            if isinstance(variant, BaseModel):
                variant = variant.model_dump()
            if not isinstance(variant, dict):
                raise ValueError("each variant must be an object")
            if not variant.get("name") or variant.get("price") in (None, ""):
                continue
            kept.append(variant)
        return kept

    @classmethod
    def for_create(cls, data: Dict[str, Any]) -> "ProductDraft":
        draft = cls.model_validate(data)
        if not draft.name:
            raise ValueError("Product name is required")
        if not draft.variants:
            raise ValueError("At least one variant with a name and price is required")
        return draft

    @classmethod
    def for_update(cls, data: Dict[str, Any]) -> "ProductDraft":
        draft = cls.model_validate(data)
        if "name" in data and not draft.name:
            raise ValueError("Product name is required")
        if draft.variants is not None and not draft.variants:
            raise ValueError("At least one variant with a name and price is required")
        return draft

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


__all__ = [
    "ResourceId",
    "CamelModel",
    "ShopInfo",
    "ContactInfo",
    "SocialMediaLink",
    "Category",
    "Farm",
    "Page",
    "AdminSettings",
    "ProductVariant",
    "Product",
    "Configuration",
    "VariantDraft",
    "ProductDraft",
]
