from __future__ import annotations

import random
from typing import Optional, Sequence

from .cards import Card
from .models import Action, ActionType, ActionWindow, Call, Check, Fold, RaiseTo

_RNG = random.Random()
_BROADWAY = {"J", "Q", "K", "A"}

# Loose, easy-to-beat table bots: they call a lot and rarely raise.
RAISE_PROBABILITY = 0.2
LOOSE_CALL_PROBABILITY = 0.7


def has_something(hole: Sequence[Card]) -> bool:
    """Pocket pair or any jack-or-better in the hole."""
    if len(hole) < 2:
        return False
    if hole[0].rank == hole[1].rank:
        return True
    return any(card.rank in _BROADWAY for card in hole)


def bot_decision(
    hole: Sequence[Card],
    window: ActionWindow,
    fold_threshold: int,
    rng: Optional[random.Random] = None,
) -> Action:
    """Pick a legal action for a bot seat from its hole cards and amount owed."""
    rng = rng or _RNG

    if window.to_call == 0:
        return Check()

    strong = has_something(hole)
    if not strong and window.to_call > fold_threshold:
        return Fold()

    if strong:
        if window.allows(ActionType.RAISE_TO) and window.min_raise_to is not None and rng.random() < RAISE_PROBABILITY:
            return RaiseTo(window.min_raise_to)
        return Call()

    if rng.random() < LOOSE_CALL_PROBABILITY:
        return Call()
    return Fold()
