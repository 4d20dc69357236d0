"""Custom exceptions for Party Cards.

Race losses (a round already created or already completed by another client)
are not represented here: callers get the existing state back instead.
"""


class PartyCardsError(Exception):
    """Base exception for all Party Cards errors."""
    pass


# Not found
class RoomNotFoundError(PartyCardsError):
    """Raised when a room does not exist."""
    pass


class RoundNotFoundError(PartyCardsError):
    """Raised when a round does not exist."""
    pass


class SubmissionNotFoundError(PartyCardsError):
    """Raised when a submission does not exist in the given round."""
    pass


class DeckNotFoundError(PartyCardsError):
    """Raised when a deck does not exist."""
    pass


# Precondition violations
class PreconditionError(PartyCardsError):
    """Base class for requests that are invalid in the current game state."""
    pass


class NotEnoughPlayersError(PreconditionError):
    """Raised when trying to start a match with too few players."""
    pass


class NotHostError(PreconditionError):
    """Raised when a non-host tries to perform a host-only action."""
    pass


class NotInRoomError(PreconditionError):
    """Raised when a player acts on a room they are not part of."""
    pass


class AlreadyInRoomError(PreconditionError):
    """Raised when a player joins a room they are already in."""
    pass


class RoomFullError(PreconditionError):
    """Raised when a room is at capacity."""
    pass


class JudgeNotFoundError(PreconditionError):
    """Raised when the current judge is no longer on the roster."""
    pass


class NotJudgeError(PreconditionError):
    """Raised when someone other than the round's judge picks a winner."""
    pass


class NotYourTurnError(PreconditionError):
    """Raised when the judge tries to submit into their own round."""
    pass


class AlreadySubmittedError(PreconditionError):
    """Raised when a player has already filled every pick slot of a round."""
    pass


class CardNotInHandError(PreconditionError):
    """Raised when a card is not (or no longer) in the player's hand."""
    pass


class RoundNotActiveError(PreconditionError):
    """Raised when submitting into a round that is no longer submitting."""
    pass


class InvalidSelectionError(PreconditionError):
    """Raised when a multi-pick selection has the wrong number of cards."""
    pass


# Resource exhaustion
class ResourceExhaustedError(PartyCardsError):
    """Base class for deck configuration problems."""
    pass


class EmptyDeckError(ResourceExhaustedError):
    """Raised when a deck has no prompt cards to draw."""
    pass


class InsufficientCardsError(ResourceExhaustedError):
    """Raised when a deck cannot cover the initial deal."""
    pass
