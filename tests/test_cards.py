import pytest

from holdem.cards import (
    Card,
    Deck,
    DeckExhausted,
    build_deck,
    parse_cards,
    parse_label,
    stacked_deck,
)


def test_fresh_deck_holds_52_unique_cards():
    deck = build_deck(seed=7)
    cards = deck.cards()
    assert len(cards) == 52
    assert len(set(cards)) == 52


def test_same_seed_gives_same_order():
    assert build_deck(seed=11).cards() == build_deck(seed=11).cards()
    assert build_deck(seed=11).cards() != build_deck(seed=12).cards()


def test_deal_consumes_from_the_front():
    deck = build_deck(seed=3)
    top = deck.cards()[:5]
    dealt = deck.deal(5)
    assert dealt == top
    assert deck.remaining == 47
    assert deck.dealt == top
    assert not set(dealt) & set(deck.cards())


def test_deal_past_the_end_raises_and_keeps_deck_intact():
    deck = build_deck(seed=1)
    deck.deal(50)
    before = deck.cards()
    with pytest.raises(DeckExhausted, match="Not enough cards"):
        deck.deal(3)
    assert deck.cards() == before
    assert len(deck) == 2


def test_shuffle_returns_dealt_cards_to_the_deck():
    deck = Deck(seed=5)
    deck.deal(10)
    deck.shuffle()
    assert deck.remaining == 52
    assert deck.dealt == []


def test_stacked_deck_deals_requested_cards_first():
    deck = stacked_deck(parse_cards(["As", "Kd", "10h"]))
    assert [card.label for card in deck.deal(3)] == ["As", "Kd", "Th"]
    assert deck.remaining == 49


def test_stacked_deck_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate"):
        stacked_deck(parse_cards(["As", "As"]))


def test_card_validation_and_names():
    card = parse_label("qh")
    assert card == Card("Q", "h")
    assert card.rank_name == "queen"
    assert card.suit_name == "hearts"
    assert card.value == 12
    with pytest.raises(ValueError, match="Invalid rank"):
        Card("1", "s")
    with pytest.raises(ValueError, match="Invalid suit"):
        Card("A", "x")
    with pytest.raises(ValueError, match="Invalid card label"):
        parse_label("Ahh")
