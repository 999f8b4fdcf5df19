class GameError(Exception):
    """Base class for caller-attributable failures raised by the game engine.

    Every engine operation validates before it writes, so a raised GameError
    means the room was left untouched. The message is meant to be shown to
    the participant who triggered it.
    """

    kind = 'game'

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self):
        return {'message': self.message, 'kind': self.kind}


class ValidationError(GameError):
    """Bad input the caller can correct (option counts, blank text, ...)."""

    kind = 'validation'


class StateConflictError(GameError):
    """Operation used against an incompatible phase or identity."""

    kind = 'conflict'


class NotFoundError(GameError):
    """Unknown room, player, team or round."""

    kind = 'not_found'
