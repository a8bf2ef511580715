from .auth import LoginCredentials, SessionIdentity
from .catalog import (
    AdminSettings,
    Category,
    Configuration,
    ContactInfo,
    Farm,
    Page,
    Product,
    ProductDraft,
    ProductVariant,
    ShopInfo,
    SocialMediaLink,
    VariantDraft,
)
from .dashboard import DashboardStats, DashboardSummary
from .results import OperationResult

__all__ = [
    "LoginCredentials",
    "SessionIdentity",
    "AdminSettings",
    "Category",
    "Configuration",
    "ContactInfo",
    "Farm",
    "Page",
    "Product",
    "ProductDraft",
    "ProductVariant",
    "ShopInfo",
    "SocialMediaLink",
    "VariantDraft",
    "DashboardStats",
    "DashboardSummary",
    "OperationResult",
]
