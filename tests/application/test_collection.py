from datetime import timedelta

from nucleus.application.collection import delete_unit, remove_duplicates, soft_delete, visible
from nucleus.application.id_service import generate_item_id, has_stable_id, make_stable_id
from nucleus.domain.models import ContentUnit, ItemKind


def test_soft_delete_marks_and_hides(make_item, now):
    items = [make_item("q_1"), make_item("q_2")]

    updated = soft_delete(items, [" q_2 "], now)

    assert updated[1].deleted_at == now
    assert updated[0].deleted_at is None
    assert [i.id for i in visible(updated)] == ["q_1"]
    assert items[1].deleted_at is None


def test_soft_delete_keeps_original_timestamp(make_item, now):
    earlier = now - timedelta(days=3)
    items = [make_item("q_1", deleted_at=earlier)]

    assert soft_delete(items, ["q_1"], now)[0].deleted_at == earlier


def test_delete_unit_cascades_to_owned_items(make_item, now):
    units = [ContentUnit(key="Art. 5"), ContentUnit(key="Art. 6")]
    items = [
        make_item("q_1", unit_ref="ART. 5"),
        make_item("q_2", unit_ref="Art. 6", tags=["Art. 5"]),
        make_item("q_3", legacy_ref="art. 5"),
    ]

    result = delete_unit(" art. 5 ", units, items, now)

    assert [u.key for u in result.units] == ["Art. 6"]
    assert result.deleted_item_ids == ["q_1", "q_3"]
    assert [i.id for i in visible(result.items)] == ["q_2"]
    assert len(result.items) == 3


def test_remove_duplicates_keeps_first(make_item):
    items = [
        make_item("q_1", unit_ref="Art. 5", primary_text="Prazo?"),
        make_item("q_2", unit_ref="art 5", primary_text="prazo"),
        make_item("q_3", unit_ref="Art. 5", primary_text="Outro"),
        make_item("q_4"),
        make_item("q_5"),
    ]

    kept, removed = remove_duplicates(items)

    assert removed == 1
    assert [i.id for i in kept] == ["q_1", "q_3", "q_4", "q_5"]


def test_generate_item_id_prefixes():
    assert generate_item_id(ItemKind.QUESTION).startswith("q_")
    assert generate_item_id(ItemKind.GAP).startswith("gap_")
    assert generate_item_id(ItemKind.FLASHCARD).startswith("fc_")
    assert generate_item_id(ItemKind.PAIR).startswith("fc_")
    assert generate_item_id(ItemKind.QUESTION) != generate_item_id(ItemKind.QUESTION)


def test_make_stable_id_is_deterministic():
    assert make_stable_id(" Art. 5", ItemKind.GAP, 3) == "art. 5::GAP::03"
    assert make_stable_id("Art. 5", "question", 12) == "art. 5::QUESTION::12"


def test_has_stable_id():
    assert has_stable_id("q_01H")
    assert not has_stable_id("temp_1")
    assert not has_stable_id("")
    assert not has_stable_id(None)
