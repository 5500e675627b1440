"""
Test suite for the MagicLook load-test package.

This package contains:
- unit/: fast in-process tests of profiles, journeys, classification,
  thresholds and the scenario users (no network)
- smoke/: live checks against a running MagicLook deployment
  (``pytest -m smoke``)
"""
