"""Error taxonomy for the village economy."""

from __future__ import annotations

from typing import Any


class EmpiresError(Exception):
    """Base exception for all game errors."""


class GameRuleError(EmpiresError):
    """An expected, recoverable rejection reported straight to the caller."""

    code = "game_rule"
    status_code = 400
    default_message = "Action not allowed"

    def __init__(self, message: str | None = None, **detail: Any) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.detail}


class PrerequisiteError(GameRuleError):
    """Raised when the target building's prerequisites are not met."""

    code = "prerequisites_not_met"
    default_message = "Prerequisites not met"


class MaxLevelError(GameRuleError):
    """Raised when the building is already at its maximum level."""

    code = "max_level_reached"
    default_message = "Maximum level reached"


class AlreadyBuildingError(GameRuleError):
    """Raised when another construction is in progress in the village."""

    code = "already_building"
    status_code = 409
    default_message = "Another building is already under construction"


class InsufficientResourcesError(GameRuleError):
    """Raised when the cost exceeds the available stock."""

    code = "insufficient_resources"
    status_code = 409
    default_message = "Insufficient resources"


class CancellationWindowExpiredError(GameRuleError):
    """Raised when a cancellation is attempted after the grace window."""

    code = "cancellation_window_expired"
    status_code = 409
    default_message = "Construction can no longer be cancelled"


class NotUnderConstructionError(GameRuleError):
    """Raised when completing/cancelling a slot that has nothing in progress."""

    code = "not_under_construction"
    status_code = 409
    default_message = "Nothing is under construction in this slot"


class InvalidSlotError(GameRuleError):
    code = "invalid_slot"
    default_message = "Invalid slot"


class SlotOccupiedError(GameRuleError):
    code = "slot_occupied"
    status_code = 409
    default_message = "Slot is occupied by another building"


class UnknownBuildingError(GameRuleError):
    code = "unknown_building"
    default_message = "Invalid building type"


class VillageNotFoundError(GameRuleError):
    code = "village_not_found"
    status_code = 404
    default_message = "Village not found"


class StorageError(EmpiresError):
    """Raised when the backing store fails; not recoverable at this layer."""
