"""Texas Hold'em table engine: deck, hand ranking, betting rounds and payouts."""

from .cards import Card, Deck, DeckExhausted, RANKS, SUITS, build_deck, parse_cards
from .evaluator import EvaluatedHand, HandCategory, compare, evaluate
from .game import GameEngine, HandContext
from .models import (
    ActionResult,
    ActionType,
    ActionWindow,
    Call,
    Check,
    Fold,
    IllegalAction,
    InvalidSeatState,
    Payout,
    Phase,
    PlayerSeat,
    RaiseTo,
    TableConfig,
    TableSnapshot,
)

__all__ = [
    "Card",
    "Deck",
    "DeckExhausted",
    "RANKS",
    "SUITS",
    "build_deck",
    "parse_cards",
    "EvaluatedHand",
    "HandCategory",
    "compare",
    "evaluate",
    "GameEngine",
    "HandContext",
    "ActionResult",
    "ActionType",
    "ActionWindow",
    "Call",
    "Check",
    "Fold",
    "IllegalAction",
    "InvalidSeatState",
    "Payout",
    "Phase",
    "PlayerSeat",
    "RaiseTo",
    "TableConfig",
    "TableSnapshot",
]
