"""
Load-test suite for the MagicLook booking application.

The suite drives MagicLook over HTTP with Locust.  Scenarios compose
journeys from the steps in :mod:`magiclook_perf.steps`; the run's load
shape and pass/fail thresholds come from :file:`profiles.yml`.

Run it through the Locust CLI::

    locust -f magiclook_perf/locustfile.py --headless --tags smoke
"""
