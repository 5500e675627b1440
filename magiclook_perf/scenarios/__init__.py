"""
Locust scenario user classes.

Each module in this package defines one Locust ``HttpUser`` subclass
that models a specific traffic pattern against MagicLook:

- :mod:`.smoke`: one virtual user walking every page once
- :mod:`.full_journey`: register, log in, book, review, log out
- :mod:`.booking_cancellation`: create a booking and cancel it again
- :mod:`.filter_search`: catalogue listing and filter churn
- :mod:`.concurrent_booking`: many users racing for one item slot
- :mod:`.spike`: anonymous burst on the public pages
- :mod:`.availability_api`: open-model load on the availability check
- :mod:`.mixed`: weighted blend of browsing, checking and booking

All concrete scenarios inherit from the abstract classes in
:mod:`.base`, which handle per-iteration context, login, and journey
execution.
"""
