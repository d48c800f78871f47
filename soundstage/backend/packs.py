"""Pack catalogue and the bit <-> pack-id codec for unlock masks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


PACK_ID_BITS: dict[str, int] = {
    "MBC25-SOMETA": 1 << 0,
    "MBC25-LUCKY": 1 << 1,
    "MBC25-PHONK-E-CHEESE": 1 << 2,
    "MBC25-FLOWSTATE": 1 << 3,
}

DEFAULT_PACK_IDS: tuple[str, ...] = ("MBC25-SOMETA",)

COURSE_REWARD_PACK_ID = "MBC25-FLOWSTATE"


@dataclass(frozen=True)
class PackOffer:
    pack_id: str
    cost: int


STORE_OFFERS: tuple[PackOffer, ...] = (
    PackOffer(pack_id="MBC25-SOMETA", cost=0),
    PackOffer(pack_id="MBC25-LUCKY", cost=25),
    PackOffer(pack_id="MBC25-PHONK-E-CHEESE", cost=100),
)


def pack_bit(pack_id: str) -> int | None:
    """Return the mask bit for a pack, or None for an unknown pack."""
    return PACK_ID_BITS.get(pack_id)


def pack_ids_to_mask(pack_ids: Iterable[str]) -> int:
    mask = 0
    for pack_id in pack_ids:
        bit = pack_bit(pack_id)
        if bit is not None:
            mask |= bit
    return mask


def mask_to_pack_ids(mask: int) -> list[str]:
    """Decode a mask into pack ids, in catalogue order. Unknown bits are ignored."""
    return [pack_id for pack_id, bit in PACK_ID_BITS.items() if mask & bit]


DEFAULT_PACK_MASK = pack_ids_to_mask(DEFAULT_PACK_IDS)


def add_default_packs(mask: int) -> int:
    """Merge the default grant into a mask. Safe to apply any number of times."""
    return mask | DEFAULT_PACK_MASK


def available_offers(owned: Iterable[str]) -> list[PackOffer]:
    owned_ids = set(owned)
    return [offer for offer in STORE_OFFERS if offer.pack_id not in owned_ids]


def find_offer(pack_id: str) -> PackOffer | None:
    """Return the store offer for a pack, or None when the pack is not sold."""
    for offer in STORE_OFFERS:
        if offer.pack_id == pack_id:
            return offer
    return None
