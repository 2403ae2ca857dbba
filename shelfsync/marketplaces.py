"""Static catalog of marketplace platforms offered when listing an item."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from fnmatch import fnmatchcase
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class MarketplacePlatform:
    id: str
    name: str
    url_pattern: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Add or remove platforms here; nothing else depends on the list contents.
MARKETPLACE_PLATFORMS: Tuple[MarketplacePlatform, ...] = (
    MarketplacePlatform("amazon", "Amazon", "https://www.amazon.com/", "#FF9900"),
    MarketplacePlatform("ebay", "eBay", "https://www.ebay.com/", "#E53238"),
    MarketplacePlatform("etsy", "Etsy", "https://www.etsy.com/", "#F1641E"),
    MarketplacePlatform(
        "facebook",
        "Facebook Marketplace",
        "https://www.facebook.com/marketplace/",
        "#1877F2",
    ),
    MarketplacePlatform("shopify", "Shopify", "https://*.myshopify.com/", "#96BF48"),
    MarketplacePlatform("walmart", "Walmart", "https://www.walmart.com/", "#0071CE"),
    MarketplacePlatform("other", "Other", None, "#6B7280"),
)


def get_marketplace_by_id(platform_id: str) -> Optional[MarketplacePlatform]:
    for platform in MARKETPLACE_PLATFORMS:
        if platform.id == platform_id:
            return platform
    return None


def get_marketplace_by_name(name: str) -> Optional[MarketplacePlatform]:
    """Case-insensitive lookup by display name."""

    wanted = name.strip().casefold()
    for platform in MARKETPLACE_PLATFORMS:
        if platform.name.casefold() == wanted:
            return platform
    return None


def is_valid_marketplace_url(platform_id: str, url: str) -> bool:
    """Loose check that ``url`` belongs to the platform.

    Platforms without a URL pattern (and unknown platforms) accept any URL.
    """

    platform = get_marketplace_by_id(platform_id)
    if platform is None or not platform.url_pattern:
        return True
    return fnmatchcase(url, platform.url_pattern + "*")
