"""
Tests for the itinerary ordering engine: append, reorder, patch, duplicate
and delete day.
"""
import pytest

from tripsync import itinerary as engine
from tripsync.errors import InvalidArgument, NotFound
from tripsync.models.models import (ItineraryItem, ItineraryItemCreate,
                                    ItineraryStatusEnum)


def build(layout):
    """Transient items from ``(day, order)`` pairs, ids starting at 1."""
    return [
        ItineraryItem(id=index, title=f"stop {index}", day=day, order=order, trip_id=1)
        for index, (day, order) in enumerate(layout, start=1)
    ]


def layout_of(items):
    return {item.id: (item.day, item.order) for item in items}


class TestAddItem:
    def test_order_is_trip_wide_count(self):
        items = build([(1, 0), (1, 1), (2, 0)])
        new_item = engine.add_item(items, ItineraryItemCreate(title="Museum", day=1), trip_id=1)
        assert new_item.order == 3
        assert new_item.day == 1
        assert new_item.trip_id == 1

    def test_day_defaults_to_one(self):
        new_item = engine.add_item([], ItineraryItemCreate(title="Museum"), trip_id=1)
        assert new_item.day == 1
        assert new_item.order == 0
        assert new_item.status == ItineraryStatusEnum.PLANNED

    def test_sorts_last_within_its_day(self):
        items = build([(1, 0), (1, 1), (2, 0)])
        new_item = engine.add_item(items, ItineraryItemCreate(title="Museum", day=2), trip_id=1)
        new_item.id = 99
        assert engine.day_items(items + [new_item], 2)[-1] is new_item

    @pytest.mark.parametrize("day", [0, -3])
    def test_rejects_non_positive_day(self, day):
        with pytest.raises(InvalidArgument):
            engine.add_item([], ItineraryItemCreate(title="Museum", day=day), trip_id=1)


class TestReorderDay:
    def test_permutation_assigns_dense_indices(self):
        items = build([(1, 0), (1, 1), (1, 2)])
        engine.reorder_day(items, 1, [2, 1, 3])
        assert layout_of(items) == {1: (1, 1), 2: (1, 0), 3: (1, 2)}
        assert [item.id for item in engine.day_items(items, 1)] == [2, 1, 3]

    def test_returns_items_sorted_by_day_and_order(self):
        items = build([(2, 0), (1, 0), (1, 1)])
        result = engine.reorder_day(items, 1, [3, 2])
        assert [item.id for item in result] == [3, 2, 1]

    def test_missing_ids_are_left_alone(self):
        items = build([(1, 0), (1, 5), (1, 9)])
        engine.reorder_day(items, 1, [3, 1])
        assert layout_of(items) == {1: (1, 1), 2: (1, 5), 3: (1, 0)}

    def test_other_days_untouched(self):
        items = build([(1, 0), (1, 1), (2, 7)])
        engine.reorder_day(items, 1, [2, 1])
        assert items[2].order == 7

    def test_unknown_id(self):
        with pytest.raises(NotFound):
            engine.reorder_day(build([(1, 0)]), 1, [1, 42])

    def test_item_from_another_day(self):
        with pytest.raises(InvalidArgument):
            engine.reorder_day(build([(1, 0), (2, 0)]), 1, [1, 2])

    def test_duplicate_id(self):
        items = build([(1, 0), (1, 1)])
        with pytest.raises(InvalidArgument):
            engine.reorder_day(items, 1, [1, 1])
        assert layout_of(items) == {1: (1, 0), 2: (1, 1)}


class TestUpdateItem:
    def test_patch_does_not_renumber_peers(self):
        items = build([(1, 0), (1, 1), (2, 0)])
        engine.update_item(items[0], {"day": 2, "order": 0, "title": "Moved"})
        assert layout_of(items) == {1: (2, 0), 2: (1, 1), 3: (2, 0)}
        assert items[0].title == "Moved"

    def test_colliding_orders_still_sort_stably(self):
        items = build([(2, 0), (1, 0)])
        engine.update_item(items[1], {"day": 2})
        assert [item.id for item in engine.sorted_items(items)] == [1, 2]

    @pytest.mark.parametrize("field", ["title", "day", "order", "status", "cost"])
    def test_rejects_null_for_required_fields(self, field):
        item = build([(1, 0)])[0]
        with pytest.raises(InvalidArgument):
            engine.update_item(item, {field: None})

    def test_rejects_bad_day_and_order(self):
        item = build([(1, 0)])[0]
        with pytest.raises(InvalidArgument):
            engine.update_item(item, {"day": 0})
        with pytest.raises(InvalidArgument):
            engine.update_item(item, {"order": -1})
        assert (item.day, item.order) == (1, 0)

    def test_optional_fields_can_be_cleared(self):
        item = build([(1, 0)])[0]
        item.location = "Louvre"
        engine.update_item(item, {"location": None, "status": ItineraryStatusEnum.DONE})
        assert item.location is None
        assert item.status == ItineraryStatusEnum.DONE


class TestDuplicateDay:
    def test_copies_append_after_destination(self):
        items = build([(1, 0), (1, 1), (1, 2), (2, 0)])
        for item in items[:3]:
            item.status = ItineraryStatusEnum.DONE

        copies = engine.duplicate_day(items, 1, 2)

        assert [c.order for c in copies] == [1, 2, 3]
        assert all(c.day == 2 for c in copies)
        assert all(c.status == ItineraryStatusEnum.PLANNED for c in copies)
        assert all(c.id is None for c in copies)
        assert [c.title for c in copies] == ["stop 1", "stop 2", "stop 3"]
        assert items[3].order == 0

    def test_empty_destination_starts_at_zero(self):
        copies = engine.duplicate_day(build([(1, 4), (1, 2)]), 1, 3)
        assert [(c.title, c.order) for c in copies] == [("stop 2", 0), ("stop 1", 1)]

    def test_source_is_unchanged(self):
        items = build([(1, 0), (1, 1)])
        engine.duplicate_day(items, 1, 2)
        assert layout_of(items) == {1: (1, 0), 2: (1, 1)}

    def test_empty_source(self):
        with pytest.raises(InvalidArgument):
            engine.duplicate_day(build([(2, 0)]), 1, 2)

    @pytest.mark.parametrize("from_day,to_day", [(0, 1), (1, 0), (1, -1)])
    def test_non_positive_days(self, from_day, to_day):
        with pytest.raises(InvalidArgument):
            engine.duplicate_day(build([(1, 0)]), from_day, to_day)


class TestDeleteDay:
    def test_renumber_shifts_and_densifies(self):
        items = build([(1, 3), (1, 1), (2, 0), (3, 5), (3, 2), (4, 8)])

        removed = engine.delete_day(items, 2, renumber=True)
        survivors = [item for item in items if item not in removed]

        assert [item.id for item in removed] == [3]
        assert layout_of(survivors) == {1: (1, 1), 2: (1, 0), 4: (2, 1), 5: (2, 0), 6: (3, 0)}
        assert {item.day for item in survivors} == {1, 2, 3}

    def test_without_renumber_leaves_gap(self):
        items = build([(1, 0), (2, 0), (3, 4)])
        removed = engine.delete_day(items, 2)
        assert [item.id for item in removed] == [2]
        assert layout_of(items[::2]) == {1: (1, 0), 3: (3, 4)}

    def test_order_ties_break_by_id(self):
        items = build([(1, 0), (1, 0), (2, 0)])
        engine.delete_day(items, 2, renumber=True)
        assert (items[0].order, items[1].order) == (0, 1)

    def test_empty_day_removes_nothing(self):
        items = build([(1, 0), (3, 0)])
        assert engine.delete_day(items, 2, renumber=True) == []
        assert layout_of(items) == {1: (1, 0), 2: (2, 0)}

    def test_non_positive_day(self):
        with pytest.raises(InvalidArgument):
            engine.delete_day(build([(1, 0)]), 0)
