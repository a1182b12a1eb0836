import pytest

from mangabook.client.category_map import CategoryMap
from mangabook.client.errors import CategoryExists, CategoryNotFound, EntryNotFound
from mangabook.config import DEFAULT_IMAGE_URL


@pytest.fixture
def cmap():
    return CategoryMap({"Reading": [], "Completed": [], "Dropped": []})


def test_add_category_appends_at_end(cmap):
    cmap.add_category("  Manhwa ")

    assert list(cmap) == ["Reading", "Completed", "Dropped", "Manhwa"]
    assert cmap["Manhwa"] == []


def test_add_category_rejects_blank_and_duplicate(cmap):
    with pytest.raises(ValueError):
        cmap.add_category("   ")
    with pytest.raises(CategoryExists):
        cmap.add_category("Completed")


def test_rename_keeps_position_and_entries(cmap):
    entry = cmap.add_entry("Completed", {"name": "Akira"})

    cmap.rename_category("Completed", "Finished")

    assert list(cmap) == ["Reading", "Finished", "Dropped"]
    assert cmap["Finished"] == [entry]


def test_rename_to_same_name_is_noop_and_collision_raises(cmap):
    before = cmap.copy()

    cmap.rename_category("Reading", "Reading")
    assert cmap == before

    with pytest.raises(CategoryExists):
        cmap.rename_category("Reading", "Dropped")
    with pytest.raises(CategoryNotFound):
        cmap.rename_category("Nope", "Other")


def test_move_category_swaps_neighbours(cmap):
    assert cmap.move_category("Completed", -1) is True
    assert list(cmap) == ["Completed", "Reading", "Dropped"]

    assert cmap.move_category("Completed", -1) is False
    assert cmap.move_category("Dropped", 1) is False
    assert list(cmap) == ["Completed", "Reading", "Dropped"]


def test_equality_is_order_sensitive():
    a = CategoryMap({"A": [], "B": []})
    b = CategoryMap({"B": [], "A": []})

    assert a != b
    assert a == {"A": [], "B": []}


def test_add_entry_fills_defaults(cmap):
    entry = cmap.add_entry("Reading", {"name": "Vinland Saga"})

    assert entry["id"]
    assert entry["chapter"] == 0
    assert entry["status"] == "plan-to-read"
    assert entry["imageUrl"] == DEFAULT_IMAGE_URL
    assert entry["addedAt"] == entry["lastUpdated"]
    assert cmap.total_entries() == 1


def test_add_entry_to_missing_category(cmap):
    with pytest.raises(CategoryNotFound):
        cmap.add_entry("Nope", {"name": "X"})


def test_update_entry_cannot_change_identity(cmap):
    entry = cmap.add_entry("Reading", {"name": "Blame!", "chapter": 3})
    original_id, added = entry["id"], entry["addedAt"]

    updated = cmap.update_entry("Reading", original_id, {"chapter": 10, "id": "other", "addedAt": "x"})

    assert updated["chapter"] == 10
    assert updated["id"] == original_id
    assert updated["addedAt"] == added


def test_delete_and_move_entry(cmap):
    first = cmap.add_entry("Reading", {"name": "One"})
    second = cmap.add_entry("Reading", {"name": "Two"})

    moved = cmap.move_entry("Reading", first["id"], "Completed")
    assert moved is first
    assert cmap["Reading"] == [second]
    assert cmap["Completed"] == [first]

    cmap.delete_entry("Reading", second["id"])
    assert cmap["Reading"] == []
    with pytest.raises(EntryNotFound):
        cmap.delete_entry("Reading", second["id"])


def test_move_entry_to_missing_category_leaves_source_untouched(cmap):
    entry = cmap.add_entry("Reading", {"name": "One"})

    with pytest.raises(CategoryNotFound):
        cmap.move_entry("Reading", entry["id"], "Nope")

    assert cmap["Reading"] == [entry]


def test_copy_is_deep(cmap):
    entry = cmap.add_entry("Reading", {"name": "One"})
    clone = cmap.copy()

    clone.update_entry("Reading", entry["id"], {"chapter": 5})

    assert cmap["Reading"][0]["chapter"] == 0


def test_entries_missing_cover(cmap):
    cmap.add_entry("Reading", {"name": "Placeholder"})
    cmap.add_entry("Reading", {"name": "Blank", "imageUrl": ""})
    cmap.add_entry("Completed", {"name": "Covered", "imageUrl": "https://cdn.example.com/c.jpg"})

    names = [e["name"] for e in cmap.entries_missing_cover()]

    assert names == ["Placeholder", "Blank"]
