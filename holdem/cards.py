from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

RANKS = "AKQJT98765432"
SUITS = "shdc"

RANK_VALUE = {rank: idx for idx, rank in enumerate("23456789TJQKA", start=2)}
RANK_NAMES = {
    "2": "2",
    "3": "3",
    "4": "4",
    "5": "5",
    "6": "6",
    "7": "7",
    "8": "8",
    "9": "9",
    "T": "10",
    "J": "jack",
    "Q": "queen",
    "K": "king",
    "A": "ace",
}
SUIT_NAMES = {"s": "spades", "h": "hearts", "d": "diamonds", "c": "clubs"}


class DeckExhausted(ValueError):
    """Raised when more cards are requested than the deck still holds."""


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    @property
    def rank_name(self) -> str:
        return RANK_NAMES[self.rank]

    @property
    def suit_name(self) -> str:
        return SUIT_NAMES[self.suit]


def canonical_cards() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS[::-1]]


class Deck:
    """52 unique cards consumed from the front. Build a fresh one per hand."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._cards: List[Card] = canonical_cards()
        self._dealt: List[Card] = []

    def shuffle(self) -> None:
        # random.shuffle is Fisher-Yates; dealt cards go back in first.
        self._cards.extend(self._dealt)
        self._dealt.clear()
        self._rng.shuffle(self._cards)

    def deal(self, count: int) -> List[Card]:
        if count < 0:
            raise ValueError("Cannot deal a negative number of cards")
        if len(self._cards) < count:
            raise DeckExhausted(f"Not enough cards left in deck ({len(self._cards)} < {count})")
        cards = self._cards[:count]
        del self._cards[:count]
        self._dealt.extend(cards)
        return cards

    @property
    def remaining(self) -> int:
        return len(self._cards)

    @property
    def dealt(self) -> List[Card]:
        return list(self._dealt)

    def cards(self) -> List[Card]:
        return list(self._cards)

    def __len__(self) -> int:
        return len(self._cards)


def build_deck(seed: Optional[int] = None) -> Deck:
    deck = Deck(seed)
    deck.shuffle()
    return deck


def stacked_deck(cards: Sequence[Card]) -> Deck:
    """Deck dealing ``cards`` first (in order), then the rest in canonical order."""
    deck = Deck()
    chosen = list(cards)
    if len(set(chosen)) != len(chosen):
        raise ValueError("Duplicate cards in stacked deck")
    rest = [card for card in canonical_cards() if card not in set(chosen)]
    deck._cards = chosen + rest
    return deck


def cards_to_labels(cards: Sequence[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    if label.startswith("10") and len(label) == 3:
        label = "T" + label[2]
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(label[0].upper(), label[1].lower())


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
