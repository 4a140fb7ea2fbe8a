"""Rejections raised by the game service before any state is written."""

from __future__ import annotations


class GameError(ValueError):
    """Base class for caller-visible game rejections."""


class ValidationError(GameError):
    """Submitted data is not acceptable (over budget, bad cut, ...)."""


class NotFoundError(GameError):
    """Unknown session, team, activity or shock."""


class StateError(GameError):
    """Operation not allowed in the current game state."""
