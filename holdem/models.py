from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .cards import Card


class Phase(str, Enum):
    PRE_FLOP = "PRE_FLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"
    FINISHED = "FINISHED"


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    RAISE_TO = "RAISE_TO"


class IllegalAction(ValueError):
    """An action the rules do not allow right now. State is left untouched."""

    def __init__(self, reason: str, msg: str) -> None:
        super().__init__(msg)
        self.reason = reason
        self.msg = msg


class InvalidSeatState(RuntimeError):
    """Engine asked to do something its own invariants rule out."""


# Tagged action variant ------------------------------------------------


@dataclass(frozen=True)
class Fold:
    type = ActionType.FOLD


@dataclass(frozen=True)
class Check:
    type = ActionType.CHECK


@dataclass(frozen=True)
class Call:
    type = ActionType.CALL


@dataclass(frozen=True)
class RaiseTo:
    amount: int
    type = ActionType.RAISE_TO


Action = Union[Fold, Check, Call, RaiseTo]


def make_action(action: Union[Action, ActionType, str, None], amount: Optional[int] = None) -> Action:
    """Normalise loose (type, amount) input into a tagged action."""
    if isinstance(action, (Fold, Check, Call, RaiseTo)):
        return action
    try:
        kind = ActionType(action.upper() if isinstance(action, str) else action)
    except ValueError:
        raise IllegalAction("UNKNOWN_ACTION", f"Unsupported action {action!r}") from None
    if kind == ActionType.FOLD:
        return Fold()
    if kind == ActionType.CHECK:
        return Check()
    if kind == ActionType.CALL:
        return Call()
    if amount is None or isinstance(amount, bool) or not isinstance(amount, int):
        raise IllegalAction("RAISE_REQUIRES_AMOUNT", "Raise requires an integer amount")
    return RaiseTo(amount)


@dataclass
class TableConfig:
    seats: int = 9
    starting_stack: int = 1_000
    sb: int = 10
    bb: int = 20
    move_time_ms: int = 30_000
    bot_delay_ms: int = 1_000
    bot_fold_threshold: Optional[int] = None

    def __post_init__(self) -> None:
        if not 2 <= self.seats <= 23:
            raise ValueError("Table needs between 2 and 23 seats")
        if self.sb <= 0 or self.bb < self.sb:
            raise ValueError("Blinds must satisfy 0 < sb <= bb")
        if self.bot_fold_threshold is None:
            self.bot_fold_threshold = self.bb + self.bb // 2


@dataclass
class PlayerSeat:
    seat: int
    name: str
    stack: int
    is_bot: bool = False
    connected: bool = False
    committed: int = 0
    total_in_pot: int = 0
    has_folded: bool = False
    has_acted: bool = False
    in_hand: bool = False
    leaving: bool = False
    hole_cards: List[Card] = field(default_factory=list)

    @property
    def is_all_in(self) -> bool:
        return self.in_hand and not self.has_folded and self.stack == 0

    @property
    def can_act(self) -> bool:
        return self.in_hand and not self.has_folded and self.stack > 0

    @property
    def is_contending(self) -> bool:
        return self.in_hand and not self.has_folded

    def reset_for_hand(self) -> None:
        self.committed = 0
        self.total_in_pot = 0
        self.has_folded = False
        self.has_acted = False
        self.in_hand = False
        self.hole_cards.clear()

    def reset_for_round(self) -> None:
        self.committed = 0
        self.has_acted = False


@dataclass(frozen=True)
class ActionWindow:
    seat: int
    legal: Tuple[ActionType, ...]
    to_call: int
    min_raise_to: Optional[int]
    max_raise_to: Optional[int]

    def allows(self, kind: ActionType) -> bool:
        return kind in self.legal

    def as_dict(self) -> Dict[str, object]:
        return {
            "seat": self.seat,
            "legal": [action.value for action in self.legal],
            "to_call": self.to_call,
            "min_raise_to": self.min_raise_to,
            "max_raise_to": self.max_raise_to,
        }


@dataclass(frozen=True)
class Payout:
    seat: int
    amount: int
    delta: int


@dataclass(frozen=True)
class TableSnapshot:
    hand_id: Optional[str]
    phase: Optional[Phase]
    community: Tuple[str, ...]
    pot: int
    current_bet: int
    last_raise_size: int
    min_raise: int
    dealer_seat: Optional[int]
    small_blind_seat: Optional[int]
    big_blind_seat: Optional[int]
    active_seat: Optional[int]
    active_player_index: Optional[int]
    players: Tuple[Dict[str, object], ...]

    def as_dict(self) -> Dict[str, object]:
        return {
            "hand_id": self.hand_id,
            "phase": self.phase.value if self.phase else None,
            "community": list(self.community),
            "pot": self.pot,
            "current_bet": self.current_bet,
            "last_raise_size": self.last_raise_size,
            "min_raise": self.min_raise,
            "dealer_seat": self.dealer_seat,
            "small_blind_seat": self.small_blind_seat,
            "big_blind_seat": self.big_blind_seat,
            "active_seat": self.active_seat,
            "active_player_index": self.active_player_index,
            "players": [dict(player) for player in self.players],
        }


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    reason: Optional[str] = None
    msg: Optional[str] = None
    events: Tuple[Dict[str, object], ...] = ()
    state: Optional[TableSnapshot] = None
