"""
Journey steps for the MagicLook HTTP surface.

Each constant below is one endpoint of the booking application with its
success criteria.  Scenarios compose journeys from these building blocks
and, where a scenario needs different data (a fixed contention slot, a
wider date window), derive a variant with :func:`dataclasses.replace`.

Value-generating ``prepare`` callables only fill keys that are still
unset, so a scenario can pin a value earlier in the journey and every
later step reuses it.
"""

from __future__ import annotations

import random
from typing import Any

from magiclook_perf.helpers import (
    CATALOG_CATEGORIES,
    GENDERS,
    SIZES,
    availability_params,
    booking_form,
    extract_booking_id_from_confirmation,
    extract_booking_id_from_list,
    is_json_array,
    is_non_empty,
    json_flag_extractor,
    random_date_range,
    registration_form,
)
from magiclook_perf.journey import JourneyStep, VirtualUserContext

REDIRECT_OK = frozenset({200, 302})
TEST_ITEMS = ((1, "S"), (2, "M"), (3, "L"), (4, "XL"), (5, "M"))


def _set_default(context: VirtualUserContext, **values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if context.values.get(key) is None}


def combine(*factories: Any) -> Any:
    """Chain several ``prepare`` callables into one."""

    def _prepare(context: VirtualUserContext) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for factory in factories:
            produced = factory(context)
            values.update(produced)
            context.values.update(produced)
        return values

    return _prepare


def pick_gender(context: VirtualUserContext) -> dict[str, Any]:
    return _set_default(context, gender=random.choice(GENDERS))


def pick_category(context: VirtualUserContext) -> dict[str, Any]:
    return _set_default(context, category=random.choice(CATALOG_CATEGORIES))


def pick_test_item(context: VirtualUserContext) -> dict[str, Any]:
    item_id, size = random.choice(TEST_ITEMS)
    return _set_default(context, item_id=item_id, size=size)


def pick_booking_window(context: VirtualUserContext) -> dict[str, Any]:
    """Start 1..8 days out, lasting 2..9 days."""
    start, end = random_date_range((1, 8), (2, 9))
    return _set_default(context, start=start, end=end)


def pick_availability_query(context: VirtualUserContext) -> dict[str, Any]:
    """Any of items 1..10 in any size, starting within a month."""
    start, end = random_date_range((1, 30), (1, 7))
    return _set_default(
        context,
        item_id=random.randint(1, 10),
        size=random.choice(SIZES),
        start=start,
        end=end,
    )


def filter_form(context: VirtualUserContext) -> dict[str, Any]:
    return {"gender": context.values["gender"], "minPrice": 10, "maxPrice": 500}


HOME = JourneyStep(name="home", method="GET", path="/", authenticated=False)

LOGIN_PAGE = JourneyStep(name="login_page", method="GET", path="/login", authenticated=False)

# Requires ``registration`` (see :func:`~magiclook_perf.helpers.unique_user_identity`).
REGISTER = JourneyStep(
    name="register",
    method="POST",
    path="/register",
    expected=REDIRECT_OK,
    authenticated=False,
    form=registration_form,
    requires=("registration",),
    provides=("registered",),
    think_time=(1.0, 3.0),
)

DASHBOARD = JourneyStep(name="dashboard", method="GET", path="/dashboard", think_time=0.5)

LIST_ITEMS = JourneyStep(
    name="list_items",
    method="GET",
    path="/items/{gender}",
    prepare=pick_gender,
    think_time=(1.0, 2.0),
)

BROWSE_CATEGORY = JourneyStep(
    name="browse_category",
    method="GET",
    path="/items/{category}",
    prepare=pick_category,
)

ITEM_DETAIL = JourneyStep(
    name="item_detail",
    method="GET",
    path="/items/{item_id}",
    prepare=pick_test_item,
)

FILTER_ITEMS = JourneyStep(
    name="filter_items",
    method="POST",
    path="/items/{gender}/filter",
    prepare=pick_gender,
    form=filter_form,
    body_check=is_non_empty,
    think_time=1.0,
)

CLEAR_FILTERS = JourneyStep(
    name="clear_filters",
    method="GET",
    path="/items/{gender}/clear",
    expected=REDIRECT_OK,
    prepare=pick_gender,
    think_time=0.5,
)

# Session is optional: the executor attaches it when the iteration has one.
# 400 is the documented answer to an empty or inverted date range.
CHECK_AVAILABILITY = JourneyStep(
    name="check_availability",
    method="GET",
    path="/api/items/{item_id}/check",
    expected_failure={400},
    authenticated=False,
    prepare=combine(pick_test_item, pick_booking_window),
    params=availability_params,
    extract=(("available", json_flag_extractor("available")),),
    provides=("availability_checked",),
    think_time=1.0,
)

BOOKING_FORM = JourneyStep(
    name="booking_form",
    method="GET",
    path="/booking/form/{item_id}",
    prepare=pick_test_item,
)

CREATE_BOOKING = JourneyStep(
    name="create_booking",
    method="POST",
    path="/booking/create",
    expected=REDIRECT_OK,
    conflict={400, 409},
    prepare=combine(pick_test_item, pick_booking_window),
    form=booking_form,
    requires=("item_id", "size", "start", "end"),
    extract=(("booking_id", extract_booking_id_from_confirmation),),
    think_time=0.5,
)

MY_BOOKINGS = JourneyStep(
    name="my_bookings",
    method="GET",
    path="/my-bookings",
    extract=(("booking_id", extract_booking_id_from_list),),
    think_time=1.0,
)

MY_BOOKINGS_FILTERED = JourneyStep(
    name="my_bookings_filtered",
    method="GET",
    path="/my-bookings",
    prepare=lambda context: _set_default(context, bookings_filter=random.choice(("active", "past"))),
    params=lambda context: {"filter": context.values["bookings_filter"]},
    think_time=1.0,
)

CANCEL_INFO = JourneyStep(
    name="cancel_info",
    method="GET",
    path="/my-bookings/{booking_id}/cancel-info",
    think_time=0.5,
)

CANCEL_BOOKING = JourneyStep(
    name="cancel_booking",
    method="POST",
    path="/my-bookings/{booking_id}/cancel",
    expected=REDIRECT_OK,
    think_time=1.0,
)

PROFILE = JourneyStep(name="profile", method="GET", path="/profile")

LOGOUT = JourneyStep(name="logout", method="GET", path="/logout", expected=REDIRECT_OK)

CATEGORIES_API = JourneyStep(
    name="categories_api",
    method="GET",
    path="/api/categories",
    authenticated=False,
    body_check=is_json_array,
)

POPULAR_ITEMS_API = JourneyStep(
    name="popular_items_api",
    method="GET",
    path="/api/items/popular",
    authenticated=False,
    params=lambda context: {"limit": 5},
    body_check=is_json_array,
)
