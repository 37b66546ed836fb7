"""Canonical card record persisted by the ingestion pipeline."""
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RARITIES = ("common", "uncommon", "rare", "mythic", "special", "bonus")
CATEGORIES = ("spell", "creature", "artifact", "equipment", "land", "other")


class CanonicalRecord(BaseModel):
    """Normalized representation of one catalog card, keyed by ``slug``."""

    model_config = ConfigDict(extra="forbid")

    # Identity
    object: str = "card"
    scryfall_id: str | None = None
    oracle_id: str | None = None
    multiverse_ids: list[int] = Field(default_factory=list)
    resource_id: str | None = None
    mtgo_id: int | None = None
    tcgplayer_id: int | None = None
    cardmarket_id: int | None = None
    name: str = ""
    slug: str = Field(..., min_length=1)
    lang: str = "en"
    released_at: date | None = None
    uri: str | None = None
    scryfall_uri: str | None = None

    # Layout and imagery
    layout: str = "normal"
    highres_image: bool = False
    image_status: str = "missing"
    image_uris: dict[str, Any] = Field(default_factory=dict)

    # Game mechanics
    mana_cost: str | None = None
    cmc: float = 0.0
    type_line: str | None = None
    oracle_text: str | None = None
    colors: list[str] = Field(default_factory=list)
    color_identity: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    produced_mana: list[str] = Field(default_factory=list)
    legalities: dict[str, Any] = Field(default_factory=dict)

    # Print and set metadata
    games: list[str] = Field(default_factory=list)
    reserved: bool = False
    game_changer: bool = False
    foil: bool = False
    nonfoil: bool = True
    finishes: list[str] = Field(default_factory=list)
    oversized: bool = False
    promo: bool = False
    reprint: bool = False
    variation: bool = False
    set_id: str | None = None
    set_code: str | None = None
    set_name: str | None = None
    set_type: str | None = None
    set_uri: str | None = None
    set_search_uri: str | None = None
    scryfall_set_uri: str | None = None
    rulings_uri: str | None = None
    prints_search_uri: str | None = None
    collector_number: str | None = None
    digital: bool = False
    rarity: str = "common"
    flavor_text: str | None = None
    card_back_id: str | None = None
    artist: str | None = None
    artist_ids: list[str] = Field(default_factory=list)
    illustration_id: str | None = None
    border_color: str = "black"
    frame: str = "2015"
    full_art: bool = False
    textless: bool = False
    booster: bool = False
    story_spotlight: bool = False
    edhrec_rank: int | None = None
    preview: dict[str, Any] | None = None
    prices: dict[str, Any] = Field(default_factory=dict)
    related_uris: dict[str, Any] = Field(default_factory=dict)
    purchase_uris: dict[str, Any] = Field(default_factory=dict)

    # Derived
    description: str = ""
    category: str = "other"
    cost: dict[str, int] = Field(default_factory=dict)
    attack: int = 0
    defense: int = 0
    health: int = 0
    attributes: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    image_url: str = ""
    is_published: bool = True

    # Fields without a first-class column
    extra: dict[str, Any] = Field(default_factory=dict)
