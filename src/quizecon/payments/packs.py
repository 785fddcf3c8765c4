"""Hint pack catalog.

Pack keys are the only purchasable SKUs; quantities here are authoritative and are
copied onto the Purchase row at checkout time.
"""

from __future__ import annotations

from dataclasses import dataclass

from quizecon.errors import InvalidPackKey


@dataclass(frozen=True)
class HintPack:
    key: str
    quantity: int
    badge: str | None = None


HINT_PACKS: dict[str, HintPack] = {
    "10_hints": HintPack(key="10_hints", quantity=10),
    "50_hints": HintPack(key="50_hints", quantity=50, badge="most_popular"),
    "200_hints": HintPack(key="200_hints", quantity=200, badge="best_value"),
}


def is_known_pack(pack_key: str) -> bool:
    return pack_key in HINT_PACKS


def get_pack(pack_key: str) -> HintPack:
    """Look up a pack. Raises InvalidPackKey for anything outside the catalog."""
    pack = HINT_PACKS.get(pack_key)
    if pack is None:
        raise InvalidPackKey(f"Unknown pack: {pack_key}")
    return pack
