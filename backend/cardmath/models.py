import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


def _ms(ts: Optional[float]) -> Optional[int]:
    return int(ts * 1000) if ts is not None else None


class PlayerStatus(str, Enum):
    LOBBY = 'lobby'
    IN_GAME = 'in-game'
    LEFT = 'left'


class RoundPhase(str, Enum):
    DEALT = 'dealt'
    AWAITING_SECOND_SELECTION = 'awaiting-second-selection'
    PROBLEM_ACTIVE = 'problem-active'
    RESOLVED = 'resolved'
    RESOLVED_PENDING_ADVANCE = 'resolved-pending-advance'
    GAME_OVER = 'game-over'


PLAYER_NUMBERS = (1, 2)


@dataclass(frozen=True)
class Card:
    id: str
    value: int
    suit: str

    def to_dict(self):
        return {'id': self.id, 'value': self.value, 'suit': self.suit}


@dataclass
class Player:
    player_id: str
    player_number: int
    sid: str
    status: PlayerStatus = PlayerStatus.LOBBY

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'playerNumber': self.player_number,
            'status': self.status.value,
        }


@dataclass(frozen=True)
class Problem:
    a: int
    b: int

    @property
    def answer(self) -> int:
        return self.a * self.b

    def to_dict(self):
        return {'a': self.a, 'b': self.b}


@dataclass(frozen=True)
class RoundRecord:
    a: int
    b: int
    correct_answer: int
    solved_by: Optional[int]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'a': self.a,
            'b': self.b,
            'correctAnswer': self.correct_answer,
            'solvedBy': self.solved_by,
            'timestamp': _ms(self.timestamp),
        }


def _per_player(value):
    return {n: value for n in PLAYER_NUMBERS}


@dataclass
class GameState:
    difficulty: str
    initial_cards: int
    hands: Dict[int, List[Card]]
    selected: Dict[int, Optional[Card]] = field(default_factory=lambda: _per_player(None))
    submitted_answers: Dict[int, object] = field(default_factory=lambda: _per_player(None))
    answered: Dict[int, bool] = field(default_factory=lambda: _per_player(False))
    scores: Dict[int, int] = field(default_factory=lambda: _per_player(0))
    current_problem: Optional[Problem] = None
    answer_options: List[int] = field(default_factory=list)
    correct_answer: int = 0
    game_over: bool = False
    winner: Optional[str] = None
    problem_solved: bool = False
    solved_by: Optional[int] = None
    round_in_progress: bool = False
    players_connected: int = 0
    # Equation stays masked until both cards are down
    reveal_equation: bool = False
    history: List[RoundRecord] = field(default_factory=list)
    # Client control flags: a fresh deal is animated, clients do not auto-advance
    deal_complete: bool = False
    advance_clients: bool = False

    def phase(self, transitioning: bool = False) -> RoundPhase:
        if self.game_over:
            return RoundPhase.GAME_OVER
        if self.problem_solved:
            return RoundPhase.RESOLVED_PENDING_ADVANCE if transitioning else RoundPhase.RESOLVED
        if self.round_in_progress:
            return RoundPhase.PROBLEM_ACTIVE
        if any(self.selected.values()):
            return RoundPhase.AWAITING_SECOND_SELECTION
        return RoundPhase.DEALT

    def clear_round(self) -> None:
        self.selected = _per_player(None)
        self.answered = _per_player(False)
        self.submitted_answers = _per_player(None)
        self.current_problem = None
        self.answer_options = []
        self.correct_answer = 0
        self.problem_solved = False
        self.solved_by = None
        self.round_in_progress = False
        self.reveal_equation = False

    def to_dict(self, transitioning: bool = False):
        def card(c):
            return c.to_dict() if c else None

        return {
            'difficulty': self.difficulty,
            'initialCards': self.initial_cards,
            'player1Hand': [c.to_dict() for c in self.hands[1]],
            'player2Hand': [c.to_dict() for c in self.hands[2]],
            'player1SelectedCard': card(self.selected[1]),
            'player2SelectedCard': card(self.selected[2]),
            'submittedAnswers': {str(n): v for n, v in self.submitted_answers.items()},
            'player1Answered': self.answered[1],
            'player2Answered': self.answered[2],
            'player1Score': self.scores[1],
            'player2Score': self.scores[2],
            'currentProblem': self.current_problem.to_dict() if self.current_problem else None,
            'answerOptions': list(self.answer_options),
            'correctAnswer': self.correct_answer,
            'gameOver': self.game_over,
            'winner': self.winner,
            'problemSolved': self.problem_solved,
            'solvedBy': self.solved_by,
            'roundInProgress': self.round_in_progress,
            'playersConnected': self.players_connected,
            'revealEquation': self.reveal_equation,
            'history': [h.to_dict() for h in self.history],
            'dealComplete': self.deal_complete,
            'advanceClients': self.advance_clients,
            'phase': self.phase(transitioning).value,
        }


@dataclass(eq=False)
class Room:
    room_id: str
    name: str
    players: Dict[str, Player] = field(default_factory=dict)  # sid -> Player, join order
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    empty_since: Optional[float] = None
    difficulty: Optional[str] = None
    initial_cards: Optional[int] = None
    transitioning: bool = False
    game: Optional[GameState] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def sids(self) -> List[str]:
        return list(self.players.keys())

    def touch(self) -> None:
        self.last_activity = time.time()

    @property
    def phase(self) -> Optional[RoundPhase]:
        return self.game.phase(self.transitioning) if self.game else None

    def options(self):
        return {'difficulty': self.difficulty, 'initialCards': self.initial_cards}

    def presence(self):
        return {
            'playersStatus': [
                {'playerNumber': p.player_number, 'status': p.status.value} for p in self.players.values()
            ],
            'playersPresent': [p.player_number for p in self.players.values()],
        }

    def to_dict(self):
        summary = {
            'roomId': self.room_id,
            'name': self.name,
            'players': len(self.players),
            'lastEmptyAt': _ms(self.empty_since),
            'difficulty': self.difficulty,
            'initialCards': self.initial_cards,
            'options': self.options(),
            'createdAt': _ms(self.created_at),
            'lastActivity': _ms(self.last_activity),
        }
        summary.update(self.presence())
        return summary
