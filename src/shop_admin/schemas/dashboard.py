from __future__ import annotations

from typing import Any, List

from pydantic import Field, model_validator

from .catalog import CamelModel, Configuration, Product


class DashboardStats(CamelModel):
    total_products: int = 0
    total_categories: int = 0
    total_farms: int = 0
    total_social_links: int = 0
    popular_products: int = 0
    total_pages: int = 0

    @classmethod
    def from_config(cls, config: Configuration) -> "DashboardStats":
        return cls(
            total_products=len(config.products),
            total_categories=len(config.categories),
            total_farms=len(config.farms),
            total_social_links=len(config.social_media_links),
            popular_products=len(config.popular_products),
            total_pages=len(config.pages),
        )


class DashboardSummary(CamelModel):
    """Payload of ``GET /admin/dashboard``."""

    stats: DashboardStats = Field(default_factory=DashboardStats)
    recent_products: List[Product] = Field(default_factory=list)
    popular_products: List[Product] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def flatten_stat_list(cls, data: Any) -> Any:
        # some deployments return stats as [{"name": ..., "value": ...}]
        if isinstance(data, dict) and isinstance(data.get("stats"), list):
            data = dict(data)
            data["stats"] = {
                _STAT_NAMES.get(item.get("name"), item.get("name")): item.get("value", 0)
                for item in data["stats"]
                if isinstance(item, dict) and item.get("name")
            }
        return data

    @classmethod
    def from_config(cls, config: Configuration, recent: int = 5) -> "DashboardSummary":
        return cls(
            stats=DashboardStats.from_config(config),
            recent_products=list(reversed(config.products[-recent:])) if recent else [],
            popular_products=config.popular_products,
        )


_STAT_NAMES = {
    "Total Products": "totalProducts",
    "Categories": "totalCategories",
    "Farms": "totalFarms",
    "Social Links": "totalSocialLinks",
    "Popular Products": "popularProducts",
    "Pages": "totalPages",
}


__all__ = ["DashboardStats", "DashboardSummary"]
