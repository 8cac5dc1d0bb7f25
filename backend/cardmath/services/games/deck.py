"""Deck and problem generation helpers."""
import random
from typing import List, Tuple

from cardmath.models import Card

SUITS = ('hearts', 'diamonds', 'clubs', 'spades')
VALUES = range(2, 13)
DECK_SIZE = len(SUITS) * len(VALUES)
OPTION_COUNT = 4
MAX_OFFSET = 20

DIFFICULTY_HAND_SIZES = {'test': 1, 'easy': 6, 'medium': 18, 'hard': 24}
DEFAULT_HAND_SIZE = 6


def build_deck() -> List[Card]:
    cards = []
    for suit in SUITS:
        for value in VALUES:
            cards.append(Card(id=f"{suit}-{value}-{len(cards)}", value=value, suit=suit))
    return cards


def deal(hand_size: int, rng=random) -> Tuple[List[Card], List[Card]]:
    """Shuffle a fresh deck and deal ``hand_size`` cards to each player."""
    deck = build_deck()
    rng.shuffle(deck)
    return deck[:hand_size], deck[hand_size:2 * hand_size]


def wrong_answer(correct: int, rng=random) -> int:
    offset = rng.randint(1, MAX_OFFSET)
    return max(1, correct + (offset if rng.random() > 0.5 else -offset))


def answer_options(correct: int, rng=random) -> List[int]:
    """Return ``OPTION_COUNT`` distinct values, one of them ``correct``, in random order."""
    options = {correct}
    while len(options) < OPTION_COUNT:
        options.add(wrong_answer(correct, rng))
    options = list(options)
    rng.shuffle(options)
    return options
