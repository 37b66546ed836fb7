"""SQLAlchemy model for canonical card records."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Card(Base):
    """Database representation of one canonical card, unique on ``slug``."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    object: Mapped[str] = mapped_column(String(32), nullable=False, default="card")
    scryfall_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    oracle_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    multiverse_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mtgo_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tcgplayer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cardmarket_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    lang: Mapped[str] = mapped_column(String(5), nullable=False, default="en")
    released_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    scryfall_uri: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Layout and imagery
    layout: Mapped[str] = mapped_column(String(64), nullable=False, default="normal")
    highres_image: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    image_status: Mapped[str] = mapped_column(String(32), nullable=False, default="missing")
    image_uris: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Game mechanics
    mana_cost: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cmc: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    type_line: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    oracle_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    colors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    color_identity: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    keywords: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    produced_mana: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    legalities: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Print and set metadata
    games: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    game_changer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    foil: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    nonfoil: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    finishes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    oversized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    promo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reprint: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    variation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    set_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    set_code: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)
    set_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    set_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    set_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    set_search_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    scryfall_set_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    rulings_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    prints_search_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    collector_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    digital: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common", index=True)
    flavor_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    card_back_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    artist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artist_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    illustration_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    border_color: Mapped[str] = mapped_column(String(32), nullable=False, default="black")
    frame: Mapped[str] = mapped_column(String(16), nullable=False, default="2015")
    full_art: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    textless: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    booster: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    story_spotlight: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edhrec_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    preview: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    prices: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    related_uris: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    purchase_uris: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Derived
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="other")
    cost: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    attack: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    health: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attributes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    extra: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""

        return f"<Card id={self.id} slug={self.slug} set={self.set_code}>"
