"""
Error taxonomy for the game session core.

Hierarchy:
- GameError (base)
  - RejectedPlacement   target cell already occupied
  - InvalidPlacement    malformed request (unknown shape/colour, off-grid)
  - SessionNotFound     no session id in the caller's context, or no session
                        has been created under that id
  - StoreFailure        persistence collaborator failed or returned bad data
  - BroadcastFailure    publish failed (never escapes the gateway)

An accepted placement that matches no challenge slot is not an error; it is
reported as an unscored placement.
"""


class GameError(Exception):
    """Base exception for the game session core."""


class RejectedPlacement(GameError):
    pass


class InvalidPlacement(GameError):
    pass


class SessionNotFound(GameError):
    pass


class StoreFailure(GameError):
    pass


class BroadcastFailure(GameError):
    pass
