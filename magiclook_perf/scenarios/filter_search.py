"""
Catalogue filter scenario.

Exercises the item listing and the session-scoped filter: list a
section, apply a price filter, clear it, then list both sections
back to back.
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.helpers import CredentialPool
from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import CLEAR_FILTERS, FILTER_ITEMS, LIST_ITEMS


@tag("filter")
class FilterSearchUser(JourneyUser):
    """Listing and filtering over a dedicated pool of accounts."""

    credential_pool = CredentialPool.numbered("filtertest", 100)

    journey = (
        replace(LIST_ITEMS, think_time=0.5),
        FILTER_ITEMS,
        CLEAR_FILTERS,
        replace(LIST_ITEMS, name="list_men", path="/items/men", prepare=None, think_time=0.3),
        replace(LIST_ITEMS, name="list_women", path="/items/women", prepare=None, think_time=0.3),
    )
