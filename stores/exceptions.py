"""
Shared exception definitions for stores and game rules.

Hierarchy:
- StoreError (base for all exceptions raised by stores and game logic)
  - GameStoreError (persistence errors)
  - GameRuleError (fatal, admin-visible rule violations; never retried)

`retryable` tells the Celery task wrapper whether a failure should be
retried or returned as a graceful failure dict.
"""


# =========================
# Base exception
# =========================

class StoreError(Exception):
    """Base exception for all store-related errors."""
    retryable: bool = True


class PlayerNotFound(StoreError):
    retryable = False


class ProofNotFound(StoreError):
    retryable = False


class UnexpectedResult(StoreError):
    retryable = True
    #aka, the "how the heck did this happen" exception, such as scenarios that can only occur by breaking ACID


# =========================
# GameStore exceptions
# =========================

class GameStoreError(StoreError):
    """Base exception for game store errors."""
    retryable = True


class PlayerAlreadyExists(GameStoreError):
    retryable = False


class VersionConflict(GameStoreError):
    """Game state moved on between snapshot and commit; recompute and retry."""
    retryable = True


class InvalidColumns(GameStoreError):
    """A change set names a column that does not exist or may not be written."""
    retryable = False


# =========================
# Game rule exceptions
# =========================

class GameRuleError(StoreError):
    """Base exception for fatal game-rule violations."""
    retryable = False


class InsufficientPlayers(GameRuleError):
    pass


class InsufficientGroups(GameRuleError):
    pass


class AmbiguousPlayerName(GameRuleError):
    pass


class VictimNotFound(GameRuleError):
    pass


class VictimAlreadyEliminated(GameRuleError):
    pass


class InvalidProofState(GameRuleError):
    pass


class GameNotStarted(GameRuleError):
    pass


class GameAlreadyStarted(GameRuleError):
    pass


class PlayerNotInGame(GameRuleError):
    pass


class InvalidGamePin(GameRuleError):
    pass


class InvalidBounty(GameRuleError):
    pass
