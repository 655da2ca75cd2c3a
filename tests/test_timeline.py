import pytest

from composer.engine.errors import SchemaViolation, TimelineError, UnknownAssetType
from composer.engine.sdk import MAIN_TAB_ID, MAIN_TAB_NAME, TabKind
from composer.engine.timeline import Timeline

LOGO = {"customerLogo": "data:image/png;base64,AA=="}


@pytest.fixture
def layer(timeline):
    return timeline.add_layer("Video 1")


class TestItems:
    def test_create_merges_overrides_over_defaults(self, timeline, layer):
        item = timeline.create_item("customer_logo_split", 1.5, layer.id, {**LOGO, "logoScale": 1.5})
        assert item.properties["backgroundColor"] == "#184cb4"
        assert item.properties["logoScale"] == 1.5
        assert item.duration == 5
        assert item.start_time == 1.5
        assert item in timeline.get_layer(layer.id).items

    def test_unknown_type_is_not_added(self, timeline, layer):
        with pytest.raises(UnknownAssetType):
            timeline.create_item("nonexistent-type", 0, layer.id)
        assert timeline.items() == []
        assert timeline.get_layer(layer.id).items == []

    def test_schema_violation_rejects_creation(self, timeline, layer):
        with pytest.raises(SchemaViolation):
            timeline.create_item("customer_logo_split", 0, layer.id)
        assert timeline.items() == []

    def test_media_gets_default_duration(self, timeline, layer):
        item = timeline.create_item("image", 0, layer.id, {"src": "a.png"})
        assert item.duration == 5.0

    def test_negative_start_clamps(self, timeline, layer):
        item = timeline.create_item("text", -3, layer.id)
        assert item.start_time == 0

    def test_move_and_resize_clamp(self, timeline, layer):
        item = timeline.create_item("text", 2, layer.id)
        timeline.move_item(item.id, -10)
        assert item.start_time == 0
        timeline.resize_item(item.id, -1)
        assert item.duration == pytest.approx(0.1)
        timeline.resize_item(item.id, 4, start_time=1)
        assert (item.start_time, item.duration) == (1, 4)

    def test_locked_items_ignore_move(self, timeline, layer):
        item = timeline.create_item("text", 2, layer.id)
        timeline.set_item_flags(item.id, locked=True)
        timeline.move_item(item.id, 7)
        timeline.resize_item(item.id, 9)
        assert (item.start_time, item.duration) == (2, 3)

    def test_move_to_other_layer(self, timeline, layer):
        other = timeline.add_layer("Video 2")
        item = timeline.create_item("text", 0, layer.id)
        timeline.move_item(item.id, 1, layer_id=other.id)
        assert item.layer_id == other.id
        assert timeline.get_layer(layer.id).items == []

    def test_update_properties_validates(self, timeline, layer):
        item = timeline.create_item("customer_logo_split", 0, layer.id, LOGO)
        with pytest.raises(SchemaViolation):
            timeline.update_properties(item.id, {"customerLogo": None})
        timeline.update_properties(item.id, {"backgroundColor": "#ff0000"})
        assert item.properties["backgroundColor"] == "#ff0000"
        assert item.properties["customerLogo"] == LOGO["customerLogo"]

    def test_items_at_orders_by_layer(self, timeline, layer):
        top = timeline.add_layer("Overlay")
        a = timeline.create_item("text", 0, top.id)
        b = timeline.create_item("image", 0, layer.id, {"src": "x.png"})
        hidden = timeline.create_item("text", 0, layer.id)
        timeline.set_item_flags(hidden.id, visible=False)
        assert [i.id for i in timeline.items_at(1.0)] == [b.id, a.id]
        assert timeline.items_at(10.0) == []

    def test_total_duration(self, timeline, layer):
        assert timeline.total_duration() == 0
        timeline.create_item("text", 4, layer.id)
        timeline.create_item("fade_in", 1, layer.id)
        assert timeline.total_duration() == 7


class TestLayers:
    def test_reorder_swaps(self, timeline):
        a = timeline.add_layer("A")
        b = timeline.add_layer("B")
        c = timeline.add_layer("C")
        timeline.reorder_layer(c.id, 0)
        assert [l.id for l in timeline.layers()] == [c.id, b.id, a.id]
        assert sorted(l.order for l in timeline.layers()) == [0, 1, 2]

    def test_remove_layer_removes_items(self, timeline):
        layer = timeline.add_layer("A")
        item = timeline.create_item("text", 0, layer.id)
        timeline.remove_layer(layer.id)
        assert timeline.find_item(item.id) is None

    def test_empty_layer_name_rejected(self, timeline):
        with pytest.raises(TimelineError):
            timeline.add_layer("   ")


class TestGroupsAndTabs:
    def _group(self, timeline):
        layer = timeline.add_layer("Video")
        a = timeline.create_item("text", 1, layer.id)
        b = timeline.create_item("fade_out", 6, layer.id)
        return timeline.create_group([a.id, b.id, "missing"], "Intro"), a, b

    def test_group_bounds(self, timeline):
        group, a, b = self._group(timeline)
        assert (group.start_time, group.end_time) == (1, 7)
        assert a.group_id == group.id and b.group_id == group.id
        assert group.color.startswith("#")

    def test_empty_selection_rejected(self, timeline):
        with pytest.raises(TimelineError):
            timeline.create_group(["missing"], "Nothing")

    def test_bounds_follow_member_moves(self, timeline):
        group, a, b = self._group(timeline)
        timeline.move_item(b.id, 10)
        assert group.end_time == 11

    def test_open_group_tab_is_idempotent(self, timeline):
        group, _, _ = self._group(timeline)
        tab = timeline.open_group_tab(group.id)
        again = timeline.open_group_tab(group.id)
        assert tab.id == again.id == f"group-{group.id}"
        assert len([t for t in timeline.tabs() if t.kind == TabKind.GROUP]) == 1
        assert timeline.active_tab_id == tab.id

    def test_close_active_tab_falls_back_to_main(self, timeline):
        group, _, _ = self._group(timeline)
        tab = timeline.open_group_tab(group.id)
        assert timeline.close_tab(tab.id) is True
        assert timeline.active_tab_id == MAIN_TAB_ID
        assert timeline.get_group(group.id).tab_id is None

    def test_main_tab_cannot_be_closed(self, timeline):
        assert timeline.close_tab(MAIN_TAB_ID) is False
        assert timeline.active_tab.name == MAIN_TAB_NAME

    def test_rename(self, timeline):
        group, _, _ = self._group(timeline)
        tab = timeline.open_group_tab(group.id)
        timeline.rename_tab(tab.id, "  Opening  ")
        assert timeline.get_tab(tab.id).name == "Opening"
        with pytest.raises(TimelineError):
            timeline.rename_group(group.id, "")

    def test_tab_items_scoped_to_group(self, timeline):
        group, a, b = self._group(timeline)
        loose = timeline.create_item("text", 0, a.layer_id)
        tab = timeline.open_group_tab(group.id)
        assert {i.id for i in timeline.tab_items(tab.id)} == {a.id, b.id}
        assert loose.id in {i.id for i in timeline.tab_items(MAIN_TAB_ID)}

    def test_tab_layers_only_hold_group_members(self, timeline):
        group, a, _ = self._group(timeline)
        other = timeline.add_layer("Other")
        timeline.create_item("text", 0, other.id)
        tab = timeline.open_group_tab(group.id)
        assert [l.id for l in timeline.tab_layers(tab.id)] == [a.layer_id]
        assert len(timeline.tab_layers(MAIN_TAB_ID)) == 2

    def test_removing_last_member_dissolves_group(self, timeline):
        group, a, b = self._group(timeline)
        timeline.open_group_tab(group.id)
        timeline.remove_item(a.id)
        timeline.remove_item(b.id)
        assert timeline.groups() == []
        assert timeline.active_tab_id == MAIN_TAB_ID


def test_records_round_trip(catalog):
    timeline = Timeline(catalog)
    layer = timeline.add_layer("Video")
    item = timeline.create_item("customer_logo_split", 2, layer.id, LOGO)
    group = timeline.create_group([item.id], "G")
    timeline.open_group_tab(group.id)

    restored = Timeline.from_records(catalog, timeline.to_records())
    assert restored.get_item(item.id).properties == item.properties
    assert restored.active_tab_id == f"group-{group.id}"
    assert restored.total_duration() == 7


def test_records_with_unknown_type_rejected(catalog):
    timeline = Timeline(catalog)
    layer = timeline.add_layer("Video")
    timeline.create_item("text", 0, layer.id)
    records = timeline.to_records()
    records["layers"][0]["items"][0]["asset_type"] = "gone"
    with pytest.raises(UnknownAssetType):
        Timeline.from_records(catalog, records)


def test_records_with_duplicate_layer_order_rejected(catalog):
    records = {
        "layers": [
            {"id": "a", "name": "A", "order": 0},
            {"id": "b", "name": "B", "order": 0},
        ]
    }
    with pytest.raises(TimelineError, match="share order 0"):
        Timeline.from_records(catalog, records)


def test_records_keep_distinct_layer_orders(catalog):
    records = {
        "layers": [
            {"id": "top", "name": "Top", "order": 3},
            {"id": "bottom", "name": "Bottom", "order": 1},
        ]
    }
    restored = Timeline.from_records(catalog, records)
    assert [l.id for l in restored.layers()] == ["bottom", "top"]
