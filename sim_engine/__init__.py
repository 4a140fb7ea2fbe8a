"""Simulation and scoring engine for the value chain investment game.

The engine is pure computation over plain records: it knows nothing about
storage, HTTP or notifications, so it can be driven from tests and from the
game service alike.
"""

from . import activities, calculations, constants, cycle, errors, linkages, scorecard, shocks, types  # noqa: F401
