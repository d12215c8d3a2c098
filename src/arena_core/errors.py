"""Exception hierarchy for the trading engine."""


class ArenaError(Exception):
    """Base class for engine errors."""


class ValidationError(ArenaError):
    """An order was refused before any ledger state changed."""


class PositionExists(ValidationError):
    """BUY on an asset the trader already holds an active position in."""


class InsufficientBalance(ValidationError):
    """Trader cash is below the requested investment."""


class PositionNotFound(ValidationError):
    """SELL on an asset with no active position."""


class TraderNotFound(ValidationError):
    """No trader row for the given id."""


class InvalidOrder(ValidationError):
    """Non-positive amount, investment or price."""


class ProviderError(ArenaError):
    """Market-data or decision-provider call failed or timed out."""


class DecisionPayloadError(ProviderError):
    """Decision provider returned a payload that fails variant validation."""


class PersistenceConflict(ArenaError):
    """Duplicate key on an append-only table (e.g. snapshot timestamp)."""


class StateInconsistency(ArenaError):
    """Lifecycle call that does not match current engine state."""
