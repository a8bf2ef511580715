"""Fallback configuration used whenever the server copy is unavailable."""

from __future__ import annotations

from .schemas.catalog import AdminSettings, Configuration, ContactInfo, ShopInfo

DEFAULT_SHOP_NAME = "CBD Shop Premium"
DEFAULT_ORDER_LINK = "https://wa.me/33123456789"


def _default_page_content() -> dict[str, dict[str, str]]:
    return {
        "homepage": {
            "heroTitle": "Produits CBD Premium",
            "heroSubtitle": "Découvrez notre sélection de produits CBD de qualité supérieure",
            "heroButtonText": "Voir nos produits",
            "sectionTitle": "Nos Produits Populaires",
            "categoriesLabel": "Types de produits",
            "farmLabel": "Boutique",
            "allCategoriesLabel": "Tous nos produits",
            "farmProductsLabel": "Produits exclusifs",
        },
        "contact": {
            "title": "Contactez-nous",
            "subtitle": "Nous sommes là pour vous aider",
            "description": (
                "Pour toute commande ou question, contactez-nous directement "
                "via notre plateforme de commande."
            ),
        },
        "socialMedia": {
            "title": "Suivez-nous sur les réseaux sociaux",
            "subtitle": "Restez connecté avec nous pour les dernières actualités et offres exclusives",
        },
        "footer": {
            "copyrightText": "© 2024 CBD Shop Premium. Tous droits réservés.",
        },
        "products": {
            "filterTitle": "Filtrer par catégorie",
            "popularText": "Populaire",
            "detailsText": "Voir détails",
            "orderText": "Commander maintenant",
            "pageTitle": "Nos Produits",
            "pageSubtitle": "Découvrez notre gamme complète de produits CBD",
        },
    }


def get_default_config() -> Configuration:
    """Return a fresh copy of the default aggregate.

    A new object is built on every call so callers may mutate it freely.
    """
    return Configuration(
        shop_info=ShopInfo(
            name=DEFAULT_SHOP_NAME,
            description="Votre boutique CBD de confiance",
            logo="🌿",
            logo_url="",
            primary_color="#000000",
            secondary_color="#ffffff",
            text_color="#ffffff",
            background_color="#ffffff",
            background_image="",
        ),
        contact_info=ContactInfo(
            order_link=DEFAULT_ORDER_LINK,
            order_text="Commandez maintenant",
            email="contact@cbdshop.fr",
            phone="+33 1 23 45 67 89",
        ),
        social_media_links=[],
        categories=[],
        farms=[],
        pages=[],
        products=[],
        admin_settings=AdminSettings(
            categories_tab_name="Catégories",
            farms_tab_name="Fermes",
            categories_button_text="Catégories",
            farms_button_text="Fermes",
        ),
        page_content=_default_page_content(),
    )


__all__ = ["DEFAULT_SHOP_NAME", "DEFAULT_ORDER_LINK", "get_default_config"]
