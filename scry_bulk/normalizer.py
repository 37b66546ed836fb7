"""Map raw catalog card objects onto :class:`CanonicalRecord`.

Every function here is total: absent or malformed input yields the documented
default instead of raising.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from .schemas.records import RARITIES, CanonicalRecord

_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")
_COST_TOKEN_RE = re.compile(r"\{([^}]+)\}")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_INT_TEXT_RE = re.compile(r"[+-]?\d+")

COLOR_NAMES: dict[str, str] = {
    "W": "white",
    "U": "blue",
    "B": "black",
    "R": "red",
    "G": "green",
}


def as_text(value: Any, default: str | None = None) -> str | None:
    if isinstance(value, str) and value != "":
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def as_int(value: Any, default: int | None = None) -> int | None:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_TEXT_RE.fullmatch(value.strip()):
        return int(value.strip())
    return default


def as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def as_flag(value: Any, default: bool = False) -> bool:
    return value if isinstance(value, bool) else default


def as_str_list(value: Any, default: None = None) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item not in (None, "")]


def as_int_list(value: Any, default: None = None) -> list[int]:
    if not isinstance(value, (list, tuple)):
        return []
    coerced = (as_int(item) for item in value)
    return [item for item in coerced if item is not None]


def as_mapping(value: Any, default: None = None) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def as_optional_mapping(value: Any, default: None = None) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) and value else None


def as_date(value: Any, default: None = None) -> date | None:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def as_rarity(value: Any, default: str = "common") -> str:
    return value if value in RARITIES else default


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Copy ``source`` from the raw card into ``target`` through ``coerce``."""

    target: str
    source: str
    coerce: Callable[[Any, Any], Any]
    default: Any = None


FIELD_RULES: tuple[FieldRule, ...] = (
    # Identity
    FieldRule("object", "object", as_text, "card"),
    FieldRule("scryfall_id", "id", as_text),
    FieldRule("oracle_id", "oracle_id", as_text),
    FieldRule("multiverse_ids", "multiverse_ids", as_int_list),
    FieldRule("resource_id", "resource_id", as_text),
    FieldRule("mtgo_id", "mtgo_id", as_int),
    FieldRule("tcgplayer_id", "tcgplayer_id", as_int),
    FieldRule("cardmarket_id", "cardmarket_id", as_int),
    FieldRule("name", "name", as_text, ""),
    FieldRule("lang", "lang", as_text, "en"),
    FieldRule("released_at", "released_at", as_date),
    FieldRule("uri", "uri", as_text),
    FieldRule("scryfall_uri", "scryfall_uri", as_text),
    # Layout and imagery
    FieldRule("layout", "layout", as_text, "normal"),
    FieldRule("highres_image", "highres_image", as_flag, False),
    FieldRule("image_status", "image_status", as_text, "missing"),
    FieldRule("image_uris", "image_uris", as_mapping),
    # Game mechanics
    FieldRule("mana_cost", "mana_cost", as_text),
    FieldRule("cmc", "cmc", as_float, 0.0),
    FieldRule("type_line", "type_line", as_text),
    FieldRule("oracle_text", "oracle_text", as_text),
    FieldRule("colors", "colors", as_str_list),
    FieldRule("color_identity", "color_identity", as_str_list),
    FieldRule("keywords", "keywords", as_str_list),
    FieldRule("produced_mana", "produced_mana", as_str_list),
    FieldRule("legalities", "legalities", as_mapping),
    # Print and set metadata
    FieldRule("games", "games", as_str_list),
    FieldRule("reserved", "reserved", as_flag, False),
    FieldRule("game_changer", "game_changer", as_flag, False),
    FieldRule("foil", "foil", as_flag, False),
    FieldRule("nonfoil", "nonfoil", as_flag, True),
    FieldRule("finishes", "finishes", as_str_list),
    FieldRule("oversized", "oversized", as_flag, False),
    FieldRule("promo", "promo", as_flag, False),
    FieldRule("reprint", "reprint", as_flag, False),
    FieldRule("variation", "variation", as_flag, False),
    FieldRule("set_id", "set_id", as_text),
    FieldRule("set_code", "set", as_text),
    FieldRule("set_name", "set_name", as_text),
    FieldRule("set_type", "set_type", as_text),
    FieldRule("set_uri", "set_uri", as_text),
    FieldRule("set_search_uri", "set_search_uri", as_text),
    FieldRule("scryfall_set_uri", "scryfall_set_uri", as_text),
    FieldRule("rulings_uri", "rulings_uri", as_text),
    FieldRule("prints_search_uri", "prints_search_uri", as_text),
    FieldRule("collector_number", "collector_number", as_text),
    FieldRule("digital", "digital", as_flag, False),
    FieldRule("rarity", "rarity", as_rarity, "common"),
    FieldRule("flavor_text", "flavor_text", as_text),
    FieldRule("card_back_id", "card_back_id", as_text),
    FieldRule("artist", "artist", as_text),
    FieldRule("artist_ids", "artist_ids", as_str_list),
    FieldRule("illustration_id", "illustration_id", as_text),
    FieldRule("border_color", "border_color", as_text, "black"),
    FieldRule("frame", "frame", as_text, "2015"),
    FieldRule("full_art", "full_art", as_flag, False),
    FieldRule("textless", "textless", as_flag, False),
    FieldRule("booster", "booster", as_flag, False),
    FieldRule("story_spotlight", "story_spotlight", as_flag, False),
    FieldRule("edhrec_rank", "edhrec_rank", as_int),
    FieldRule("preview", "preview", as_optional_mapping),
    FieldRule("prices", "prices", as_mapping),
    FieldRule("related_uris", "related_uris", as_mapping),
    FieldRule("purchase_uris", "purchase_uris", as_mapping),
)

# Raw stats kept verbatim in the extensibility bag.
EXTRA_FIELDS: tuple[str, ...] = ("power", "toughness", "loyalty", "defense")


def slugify(value: Any) -> str:
    """Lowercase ``value`` and collapse non-alphanumeric runs into single dashes."""

    if value is None:
        return ""
    return _SLUG_SEPARATOR_RE.sub("-", str(value).lower()).strip("-")


def determine_category(type_line: str | None) -> str:
    """Classify a type line into a coarse card category, first match wins."""

    if not type_line:
        return "other"
    lowered = type_line.lower()
    if "creature" in lowered:
        return "creature"
    if "instant" in lowered or "sorcery" in lowered:
        return "spell"
    if "artifact" in lowered:
        return "equipment" if "equipment" in lowered else "artifact"
    if "land" in lowered:
        return "land"
    return "other"


def parse_cost(mana_cost: str | None) -> dict[str, int]:
    """Break ``{2}{R}{R}`` style costs into ``{"generic": 2, "r": 2}``."""

    cost: dict[str, int] = {}
    if not mana_cost:
        return cost
    for token in _COST_TOKEN_RE.findall(mana_cost):
        if token.isdecimal():
            cost["generic"] = cost.get("generic", 0) + int(token)
        else:
            symbol = token.lower()
            cost[symbol] = cost.get(symbol, 0) + 1
    return cost


def parse_int(value: Any) -> int:
    """Parse a leading integer (``"2+*"`` → 2), defaulting to 0."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            return int(match.group(1))
    return 0


def color_attributes(color_identity: Iterable[Any] | None) -> list[str]:
    return [COLOR_NAMES[c] for c in color_identity or () if c in COLOR_NAMES]


def derive_tags(set_code: str | None, keywords: Iterable[Any] | None) -> list[str]:
    """Set code followed by keywords, with empty values dropped."""

    candidates = [set_code, *(keywords or ())]
    return [str(tag) for tag in candidates if tag]


def derive_image_url(image_uris: Mapping[str, Any] | None) -> str:
    if not isinstance(image_uris, Mapping):
        return ""
    for size in ("normal", "small"):
        candidate = image_uris.get(size)
        if isinstance(candidate, str) and candidate:
            return candidate
    return ""


def _derive_slug(name: str, scryfall_id: str | None) -> str:
    return slugify(name) or slugify(scryfall_id) or "unknown"


def normalize(raw: Any) -> CanonicalRecord:
    """Map one raw catalog card onto the canonical schema."""

    source: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    values: dict[str, Any] = {}
    for rule in FIELD_RULES:
        values[rule.target] = rule.coerce(source.get(rule.source), rule.default)

    values["slug"] = _derive_slug(values["name"], values["scryfall_id"])
    values["description"] = values["oracle_text"] or values["flavor_text"] or ""
    values["category"] = determine_category(values["type_line"])
    values["cost"] = parse_cost(values["mana_cost"])
    values["attack"] = parse_int(source.get("power"))
    values["defense"] = parse_int(source.get("toughness"))
    values["health"] = 0
    values["attributes"] = color_attributes(values["color_identity"])
    values["tags"] = derive_tags(values["set_code"], values["keywords"])
    values["image_url"] = derive_image_url(values["image_uris"])
    values["is_published"] = True
    values["extra"] = {field: as_text(source.get(field)) for field in EXTRA_FIELDS}

    return CanonicalRecord(**values)
