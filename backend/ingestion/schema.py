"""
Normalized records produced by the fetch/parse layer.

Scraped tournament rows and deck lists from the tournament site, and product
and pricing records from the catalog API. Source-specific parsing happens in
the connectors; everything downstream works with these models only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LimitlessTournamentRow(BaseModel):
    """One row of the completed-tournaments listing."""

    source_tournament_id: str = Field(..., description="Numeric id from the detail URL, else URL, else name")
    name: str
    region: Optional[str] = None
    country: Optional[str] = None
    format: Optional[str] = None
    player_count: Optional[int] = None
    is_player_count_approx: bool = False
    winner_name: Optional[str] = None
    winner_url: Optional[str] = None
    event_date: datetime
    tournament_url: str


class TournamentListPage(BaseModel):
    """Rows of one listing page plus the page count advertised by the pagination widget."""

    page: int
    rows: List[LimitlessTournamentRow] = Field(default_factory=list)
    max_pages: int


class TournamentResultRow(BaseModel):
    """One placement on a tournament detail page."""

    standing: Optional[int] = None
    player_name: str
    player_url: Optional[str] = None
    deck_name: Optional[str] = None
    deck_slug: Optional[str] = None
    deck_list_id: Optional[str] = None
    deck_list_url: Optional[str] = None


class DeckListCardEntry(BaseModel):
    code: str
    quantity: int = Field(1, ge=1)
    section: str = ""


class DeckListData(BaseModel):
    leader_code: Optional[str] = None
    cards: List[DeckListCardEntry] = Field(default_factory=list)


class ExtendedField(BaseModel):
    """Loosely typed name/value pair from a product's extendedData array."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    value: Optional[Any] = None


class TcgplayerProduct(BaseModel):
    """Catalog product as returned by the product lookup endpoint (unknown keys kept)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    product_id: int = Field(..., alias="productId")
    name: Optional[str] = None
    clean_name: Optional[str] = Field(None, alias="cleanName")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    category_id: Optional[int] = Field(None, alias="categoryId")
    category_name: Optional[str] = Field(None, alias="categoryName")
    product_line_name: Optional[str] = Field(None, alias="productLineName")
    group_id: Optional[int] = Field(None, alias="groupId")
    url: Optional[str] = None
    sku: Optional[str] = None
    extended_data: List[ExtendedField] = Field(default_factory=list, alias="extendedData")

    @field_validator("sku", mode="before")
    @classmethod
    def _sku_as_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("extended_data", mode="before")
    @classmethod
    def _extended_data_list(cls, value: Any) -> Any:
        # Null or a non-list shape means no extended fields; entries that are not objects are dropped.
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, (dict, ExtendedField))]

    def raw(self) -> dict:
        """The product as received, for verbatim storage."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class PricingEntry(BaseModel):
    """One pricing variant (sub type) of a product."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    product_id: int = Field(..., alias="productId")
    market_price: Optional[float] = Field(None, alias="marketPrice")
    mid_price: Optional[float] = Field(None, alias="midPrice")
    low_price: Optional[float] = Field(None, alias="lowPrice")
    high_price: Optional[float] = Field(None, alias="highPrice")
    direct_low_price: Optional[float] = Field(None, alias="directLowPrice")
    sub_type_name: Optional[str] = Field(None, alias="subTypeName")


class ProductSearchResult(BaseModel):
    """Search step of the two-step catalog protocol: ids only."""

    product_ids: List[int] = Field(default_factory=list)
    total: Optional[int] = None


class ProductPage(BaseModel):
    """Hydrated page of products plus the total reported by the search step."""

    products: List[TcgplayerProduct] = Field(default_factory=list)
    total: Optional[int] = None
