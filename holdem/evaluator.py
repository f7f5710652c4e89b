from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .cards import Card

K = TypeVar("K")


class HandCategory(IntEnum):
    HIGH_CARD = 0
    PAIR = 1
    TWO_PAIR = 2
    THREE_OF_A_KIND = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    FOUR_OF_A_KIND = 7
    STRAIGHT_FLUSH = 8
    ROYAL_FLUSH = 9


CATEGORY_NAMES = {
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.PAIR: "Pair",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.THREE_OF_A_KIND: "Three of a Kind",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.FLUSH: "Flush",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.FOUR_OF_A_KIND: "Four of a Kind",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.ROYAL_FLUSH: "Royal Flush",
}

_PLURAL = {
    14: "Aces",
    13: "Kings",
    12: "Queens",
    11: "Jacks",
    10: "Tens",
    9: "Nines",
    8: "Eights",
    7: "Sevens",
    6: "Sixes",
    5: "Fives",
    4: "Fours",
    3: "Threes",
    2: "Twos",
}
_SINGULAR = {14: "Ace", 13: "King", 12: "Queen", 11: "Jack", 10: "Ten"}


@dataclass(frozen=True)
class EvaluatedHand:
    category: HandCategory
    tie_breakers: Tuple[int, ...]
    label: str = ""

    @property
    def name(self) -> str:
        return CATEGORY_NAMES[self.category]


def evaluate(cards: Sequence[Card]) -> EvaluatedHand:
    """Best 5-card hand out of 5-7 cards (hole + community).

    Fewer than five cards only ever happens for seats that have not seen the
    flop; they get a high-card reading of whatever they hold.
    """
    if not cards or len(cards) > 7:
        raise ValueError(f"Expected 1-7 cards, got {len(cards)}")
    if len(set(cards)) != len(cards):
        raise ValueError("Duplicate cards in hand")

    values = sorted((card.value for card in cards), reverse=True)
    if len(cards) < 5:
        return _make(HandCategory.HIGH_CARD, values[:5])

    rank_counts = Counter(values)
    suit_buckets: Dict[str, List[int]] = {}
    for card in cards:
        suit_buckets.setdefault(card.suit, []).append(card.value)

    flush_values: Optional[List[int]] = None
    for bucket in suit_buckets.values():
        if len(bucket) >= 5:
            flush_values = sorted(bucket, reverse=True)
            break

    if flush_values is not None:
        straight_flush_high = _straight_high(flush_values)
        if straight_flush_high == 14:
            return _make(HandCategory.ROYAL_FLUSH, [14])
        if straight_flush_high is not None:
            return _make(HandCategory.STRAIGHT_FLUSH, [straight_flush_high])

    # (count, rank) descending: quads first, then trips, pairs, singles.
    groups = sorted(((count, rank) for rank, count in rank_counts.items()), reverse=True)
    quads = [rank for count, rank in groups if count == 4]
    trips = [rank for count, rank in groups if count == 3]
    pairs = [rank for count, rank in groups if count == 2]

    if quads:
        quad = quads[0]
        kicker = max(value for value in values if value != quad)
        return _make(HandCategory.FOUR_OF_A_KIND, [quad, kicker])

    if trips and (len(trips) > 1 or pairs):
        top = trips[0]
        second = max(trips[1:] + pairs)
        return _make(HandCategory.FULL_HOUSE, [top, second])

    if flush_values is not None:
        return _make(HandCategory.FLUSH, flush_values[:5])

    straight_high = _straight_high(values)
    if straight_high is not None:
        return _make(HandCategory.STRAIGHT, [straight_high])

    if trips:
        kickers = [value for value in values if value != trips[0]][:2]
        return _make(HandCategory.THREE_OF_A_KIND, [trips[0]] + kickers)

    if len(pairs) >= 2:
        high, low = pairs[0], pairs[1]
        kicker = max(value for value in values if value not in (high, low))
        return _make(HandCategory.TWO_PAIR, [high, low, kicker])

    if pairs:
        kickers = [value for value in values if value != pairs[0]][:3]
        return _make(HandCategory.PAIR, [pairs[0]] + kickers)

    return _make(HandCategory.HIGH_CARD, values[:5])


def _straight_high(values: Sequence[int]) -> Optional[int]:
    distinct = sorted(set(values), reverse=True)
    run = 1
    for idx in range(1, len(distinct)):
        if distinct[idx - 1] - 1 == distinct[idx]:
            run += 1
            if run >= 5:
                return distinct[idx] + 4
        else:
            run = 1
    # Wheel: the ace plays low and is not contiguous with the 2 under Ace=14.
    if {14, 5, 4, 3, 2}.issubset(distinct):
        return 5
    return None


def _make(category: HandCategory, tie_breakers: Sequence[int]) -> EvaluatedHand:
    breakers = tuple(tie_breakers)
    return EvaluatedHand(category=category, tie_breakers=breakers, label=_label(category, breakers))


def _label(category: HandCategory, breakers: Tuple[int, ...]) -> str:
    if not breakers:
        return CATEGORY_NAMES[category]
    top = breakers[0]
    if category == HandCategory.ROYAL_FLUSH:
        return "Royal Flush"
    if category in (HandCategory.STRAIGHT_FLUSH, HandCategory.STRAIGHT):
        high = "5" if top == 5 else _SINGULAR.get(top, str(top))
        return f"{CATEGORY_NAMES[category]} ({high} high)"
    if category == HandCategory.FOUR_OF_A_KIND:
        return f"Four of a Kind ({_PLURAL[top]})"
    if category == HandCategory.FULL_HOUSE:
        return f"Full House ({_PLURAL[top]} over {_PLURAL[breakers[1]]})"
    if category == HandCategory.FLUSH:
        return f"Flush ({_SINGULAR.get(top, str(top))} high)"
    if category == HandCategory.THREE_OF_A_KIND:
        return f"Three of a Kind ({_PLURAL[top]})"
    if category == HandCategory.TWO_PAIR:
        return f"Two Pair ({_PLURAL[top]} and {_PLURAL[breakers[1]]})"
    if category == HandCategory.PAIR:
        return f"Pair of {_PLURAL[top]}"
    return f"{_SINGULAR.get(top, str(top))} High"


def compare(a: EvaluatedHand, b: EvaluatedHand) -> int:
    """1 if ``a`` wins, -1 if ``b`` wins, 0 for an exact tie."""
    if a.category != b.category:
        return 1 if a.category > b.category else -1
    for left, right in zip(a.tie_breakers, b.tie_breakers):
        if left != right:
            return 1 if left > right else -1
    if len(a.tie_breakers) != len(b.tie_breakers):
        return 1 if len(a.tie_breakers) > len(b.tie_breakers) else -1
    return 0


def best_hands(hands: Mapping[K, EvaluatedHand]) -> List[K]:
    """Every key tied for the best hand, in ascending order."""
    best: Optional[EvaluatedHand] = None
    winners: List[K] = []
    for key in sorted(hands):  # type: ignore[type-var]
        hand = hands[key]
        if best is None or compare(hand, best) > 0:
            best = hand
            winners = [key]
        elif compare(hand, best) == 0:
            winners.append(key)
    return winners


def describe(hand: EvaluatedHand) -> str:
    return hand.category.name.lower()
