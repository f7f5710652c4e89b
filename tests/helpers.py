from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from holdem.cards import parse_cards, stacked_deck
from holdem.game import GameEngine, HandContext
from holdem.models import ActionType, TableConfig


def create_engine(
    *,
    players: int = 3,
    seats: Optional[int] = None,
    starting_stack: int = 1_000,
    sb: int = 10,
    bb: int = 20,
    stacks: Optional[Sequence[int]] = None,
) -> GameEngine:
    """Instantiate a game engine with ``players`` humans in seats 0..n-1."""
    engine = GameEngine(
        TableConfig(seats=seats or players, starting_stack=starting_stack, sb=sb, bb=bb)
    )
    for idx in range(players):
        seat = engine.assign_seat(f"Player{idx}")
        if stacks is not None:
            seat.stack = stacks[idx]
    return engine


def start_hand(engine: GameEngine, seed: int = 42) -> HandContext:
    ctx = engine.start_hand(seed=seed)
    assert ctx is not None
    return ctx


def rig_deck(monkeypatch, labels: Sequence[str]) -> None:
    """Make the next hands deal ``labels`` first (hole cards, then the board)."""
    monkeypatch.setattr("holdem.game.build_deck", lambda seed=None: stacked_deck(parse_cards(labels)))


def perform_actions(engine: GameEngine, actions: Iterable[Tuple[int, ActionType, Optional[int]]]) -> List[dict]:
    """Apply a scripted sequence of actions (seat, action, amount)."""
    events: List[dict] = []
    for seat_idx, action, amount in actions:
        events.extend(engine.apply_action(seat_idx, action, amount))
    return events


def auto_complete_hand(engine: GameEngine) -> None:
    """Advance the current hand with check/call until completion."""
    while not engine.is_hand_complete():
        actor = engine.next_actor()
        if actor is None:
            break
        window = engine.legal_actions(actor)
        if window.allows(ActionType.CHECK):
            engine.apply_action(actor, ActionType.CHECK)
        elif window.allows(ActionType.CALL):
            engine.apply_action(actor, ActionType.CALL)
        else:
            engine.apply_action(actor, ActionType.FOLD)


def total_chips(engine: GameEngine) -> int:
    stacks = sum(seat.stack for seat in engine.seats if seat)
    pot = engine.hand.pot if engine.hand else 0
    return stacks + pot
