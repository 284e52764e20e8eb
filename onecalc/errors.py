"""Exception taxonomy for the OneCalc engine.

Only schema import failures and invalid item payloads reach callers.
Everything else is caught at the seam where it happens and logged.
"""

from __future__ import annotations


class OneCalcError(Exception):
    """Base class for all OneCalc errors."""


class InvalidRegistrationError(OneCalcError):
    """A module registration had an unusable id, provider or kind."""


class ProviderExecutionError(OneCalcError):
    """A result provider raised or returned malformed data."""

    def __init__(self, module_id: str, reason: str):
        super().__init__(f"Module '{module_id}' failed: {reason}")
        self.module_id = module_id
        self.reason = reason


class SchemaValidationError(OneCalcError):
    """A schema blob could not be imported."""


class UnknownItemError(OneCalcError):
    """An update or removal referenced an item id that does not exist."""

    def __init__(self, item_id: str):
        super().__init__(f"Schema item '{item_id}' not found")
        self.item_id = item_id


class InvalidItemError(OneCalcError):
    """A schema item payload was missing its id or failed validation."""
