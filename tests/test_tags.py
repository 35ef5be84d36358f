import pytest

from svmhmm.tags import TagRegistry


def test_register_tag_assigns_ids_in_first_seen_order():
    registry = TagRegistry()

    assert registry.register_tag("N") == 0
    assert registry.register_tag("V") == 1
    assert registry.get_num_tags() == 2


def test_register_tag_is_idempotent():
    registry = TagRegistry()
    first = registry.register_tag("N")
    registry.register_tag("V")

    assert registry.register_tag("N") == first
    assert registry.get_num_tags() == 2


def test_distinct_tags_get_distinct_ids_and_round_trip():
    registry = TagRegistry()
    tags = ["DT", "NN", "VBZ", "JJ", "NN", "DT", "."]
    ids = [registry.register_tag(t) for t in tags]

    assert len(set(ids)) == len(set(tags))
    assert sorted(set(ids)) == list(range(registry.get_num_tags()))
    for tag, tag_id in zip(tags, ids):
        assert registry.get_tag_by_id(tag_id) == tag


@pytest.mark.parametrize("bad_id", [2, 100, -1])
def test_get_tag_by_id_rejects_unknown_ids(bad_id):
    registry = TagRegistry()
    registry.register_tag("N")
    registry.register_tag("V")

    with pytest.raises(ValueError):
        registry.get_tag_by_id(bad_id)


def test_empty_registry_has_no_valid_ids():
    with pytest.raises(ValueError):
        TagRegistry().get_tag_by_id(0)


def test_frozen_registry_rejects_new_tags_but_resolves_known_ones():
    registry = TagRegistry()
    registry.register_tag("N")
    registry.freeze()

    assert registry.register_tag("N") == 0
    with pytest.raises(RuntimeError):
        registry.register_tag("V")
    assert registry.get_num_tags() == 1


def test_get_id_does_not_register():
    registry = TagRegistry()
    registry.register_tag("N")

    assert registry.get_id("N") == 0
    with pytest.raises(KeyError):
        registry.get_id("V")
    assert "V" not in registry


def test_from_tags_preserves_order_and_rejects_duplicates():
    registry = TagRegistry.from_tags(["V", "N"])

    assert registry.tags() == ["V", "N"]
    assert registry.get_id("N") == 1
    with pytest.raises(ValueError):
        TagRegistry.from_tags(["N", "N"])


def test_separate_registries_are_independent():
    a = TagRegistry()
    b = TagRegistry()
    a.register_tag("N")
    b.register_tag("V")

    assert a.tags() == ["N"]
    assert b.tags() == ["V"]
