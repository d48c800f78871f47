from soundstage.backend.packs import (
    DEFAULT_PACK_MASK,
    PACK_ID_BITS,
    add_default_packs,
    available_offers,
    mask_to_pack_ids,
    pack_bit,
    pack_ids_to_mask,
)


def test_pack_bits_are_distinct_single_bits() -> None:
    bits = list(PACK_ID_BITS.values())

    assert len(set(bits)) == len(bits)
    assert all(bit > 0 and bit & (bit - 1) == 0 for bit in bits)


def test_unknown_pack_has_no_bit() -> None:
    assert pack_bit("NOT-A-PACK") is None
    assert pack_ids_to_mask(["NOT-A-PACK"]) == 0


def test_mask_decodes_in_catalogue_order_and_ignores_unknown_bits() -> None:
    mask = pack_ids_to_mask(["MBC25-FLOWSTATE", "MBC25-LUCKY"]) | (1 << 20)

    assert mask_to_pack_ids(mask) == ["MBC25-LUCKY", "MBC25-FLOWSTATE"]


def test_add_default_packs_is_idempotent_and_keeps_existing_bits() -> None:
    lucky = pack_ids_to_mask(["MBC25-LUCKY"])

    merged = add_default_packs(lucky)

    assert merged == lucky | DEFAULT_PACK_MASK
    assert add_default_packs(merged) == merged
    assert "MBC25-SOMETA" in mask_to_pack_ids(add_default_packs(0))


def test_available_offers_excludes_owned_packs() -> None:
    offers = available_offers({"MBC25-SOMETA"})

    assert [(offer.pack_id, offer.cost) for offer in offers] == [
        ("MBC25-LUCKY", 25),
        ("MBC25-PHONK-E-CHEESE", 100),
    ]
    assert available_offers(PACK_ID_BITS) == []
