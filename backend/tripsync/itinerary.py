"""Itinerary ordering.

Items are displayed by the composite ``(day, order)`` key. ``order`` is only
guaranteed dense within a day right after :func:`reorder_day` or a renumbering
:func:`delete_day`; appends use the trip-wide item count, so consumers must
always sort instead of assuming contiguous indices.
"""

from collections import defaultdict
from collections.abc import Iterable

from .errors import InvalidArgument, NotFound
from .models.models import (ItineraryItem, ItineraryItemCreate,
                            ItineraryStatusEnum)

_NON_NULLABLE = ("title", "day", "order", "status", "cost")


def sort_key(item: ItineraryItem) -> tuple[int, int, int]:
    return (item.day, item.order, item.id or 0)


def sorted_items(items: Iterable[ItineraryItem]) -> list[ItineraryItem]:
    return sorted(items, key=sort_key)


def day_items(items: Iterable[ItineraryItem], day: int) -> list[ItineraryItem]:
    return sorted_items(item for item in items if item.day == day)


def _check_day(day, name: str = "day") -> int:
    if not isinstance(day, int) or isinstance(day, bool) or day < 1:
        raise InvalidArgument(f"Invalid {name}, expected a positive integer")
    return day


def add_item(items: list[ItineraryItem], data: ItineraryItemCreate, trip_id: int) -> ItineraryItem:
    day = _check_day(1 if data.day is None else data.day)
    return ItineraryItem(
        **data.model_dump(exclude={"day"}),
        day=day,
        order=len(items),
        trip_id=trip_id,
    )


def update_item(item: ItineraryItem, patch: dict) -> ItineraryItem:
    """Apply a partial update. Peers are never renumbered as a side effect."""
    for key in _NON_NULLABLE:
        if key in patch and patch[key] is None:
            raise InvalidArgument(f"Field {key} cannot be null")

    if "day" in patch:
        _check_day(patch["day"])
    if "order" in patch and patch["order"] < 0:
        raise InvalidArgument("Invalid order, expected a non-negative integer")

    for key, value in patch.items():
        setattr(item, key, value)
    return item


def reorder_day(items: list[ItineraryItem], day: int, item_ids: list[int]) -> list[ItineraryItem]:
    _check_day(day)
    if len(set(item_ids)) != len(item_ids):
        raise InvalidArgument("Duplicate item in order")

    by_id = {item.id: item for item in items}
    ordered = []
    for item_id in item_ids:
        item = by_id.get(item_id)
        if not item:
            raise NotFound()
        if item.day != day:
            raise InvalidArgument(f"Item {item_id} is not scheduled on day {day}")
        ordered.append(item)

    for index, item in enumerate(ordered):
        item.order = index
    return sorted_items(items)


def duplicate_day(items: list[ItineraryItem], from_day: int, to_day: int) -> list[ItineraryItem]:
    _check_day(from_day, "source day")
    _check_day(to_day, "destination day")

    source = day_items(items, from_day)
    if not source:
        raise InvalidArgument(f"Day {from_day} has no items")

    destination = [item.order for item in items if item.day == to_day]
    next_order = max(destination) + 1 if destination else 0

    copies = []
    for offset, item in enumerate(source):
        copies.append(
            ItineraryItem(
                **item.model_dump(exclude={"id", "day", "order", "status", "trip_id"}),
                day=to_day,
                order=next_order + offset,
                status=ItineraryStatusEnum.PLANNED,
                trip_id=item.trip_id,
            )
        )
    return copies


def delete_day(items: list[ItineraryItem], day: int, renumber: bool = False) -> list[ItineraryItem]:
    """Return the items to remove, shifting and re-densifying the survivors when asked."""
    _check_day(day)

    removed = [item for item in items if item.day == day]
    if not renumber:
        return removed

    survivors = [item for item in items if item.day != day]
    for item in survivors:
        if item.day > day:
            item.day -= 1

    by_day: dict[int, list[ItineraryItem]] = defaultdict(list)
    for item in survivors:
        by_day[item.day].append(item)
    for day_group in by_day.values():
        for index, item in enumerate(sorted(day_group, key=sort_key)):
            item.order = index
    return removed
