"""Player move tokens and their chat aliases."""

from enum import Enum, auto


class Move(Enum):
    """A decision for the active hand."""

    HIT = auto()
    STAND = auto()
    DOUBLE = auto()
    SPLIT = auto()
    SURRENDER = auto()

    def __str__(self) -> str:
        return self.name.lower()


MOVE_ALIASES: dict[str, Move] = {
    "h": Move.HIT,
    "hit": Move.HIT,
    "s": Move.STAND,
    "stand": Move.STAND,
    "d": Move.DOUBLE,
    "double": Move.DOUBLE,
    "double down": Move.DOUBLE,
    "p": Move.SPLIT,
    "split": Move.SPLIT,
    "r": Move.SURRENDER,
    "surrender": Move.SURRENDER,
}


def parse_move(text: str) -> Move | None:
    """
    Map a chat line to a move.

    Returns:
        The move, or None if the text is not a recognized alias
    """
    return MOVE_ALIASES.get(text.strip().lower())
