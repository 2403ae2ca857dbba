"""Marketplace listings and their flattened single-cell text format.

A listing sequence is written as ``"<platform>: $<price> (<url>); ..."``. The
format is lossy: platform or price values containing ``:``, ``$``, ``(``,
``)`` or ``;`` do not survive a round trip. Decoding never fails; malformed
segments become listings with empty fields.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

Numeric = Union[int, float, str]

LISTING_SEPARATOR = "; "


@dataclass
class MarketplaceListing:
    """A single posting of an item on a marketplace."""

    platform: str
    listing_price: Numeric = ""
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "listingPrice": self.listing_price,
            "url": self.url,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MarketplaceListing":
        platform = record.get("platform")
        price = record.get("listingPrice", record.get("listing_price"))
        url = record.get("url")
        return cls(
            platform="" if platform is None else str(platform),
            listing_price="" if price is None else price,
            url="" if url is None else str(url),
        )


def encode_listing(listing: MarketplaceListing) -> str:
    text = f"{listing.platform}: ${listing.listing_price}"
    if listing.url:
        text += f" ({listing.url})"
    return text


def encode(listings: Iterable[MarketplaceListing]) -> str:
    return LISTING_SEPARATOR.join(encode_listing(listing) for listing in listings)


def decode_segment(segment: str) -> MarketplaceListing:
    head, _, url = segment.partition("(")
    platform, _, price = head.partition(":")
    price = price.strip()
    if price.startswith("$"):
        price = price[1:].strip()
    url = url.strip()
    if url.endswith(")"):
        url = url[:-1].strip()
    return MarketplaceListing(platform=platform.strip(), listing_price=price, url=url)


def decode(text: Optional[Any]) -> List[MarketplaceListing]:
    if text is None:
        return []
    value = str(text)
    if not value.strip():
        return []
    return [decode_segment(segment) for segment in value.split(";")]


__all__ = [
    "MarketplaceListing",
    "decode",
    "decode_segment",
    "encode",
    "encode_listing",
]
