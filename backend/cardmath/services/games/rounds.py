"""Authoritative round state machine.

One GameState per room, stored on the room itself. Every public method
re-fetches the room, takes its lock and returns the (possibly unchanged)
state, or None when the room or its game does not exist.

Phases::

    dealt -> awaiting-second-selection -> problem-active -> resolved
    resolved --advance--> dealt | game-over

``resolved-pending-advance`` is ``resolved`` while the transition scheduler
holds the room; no new selection is accepted in that window.
"""
import logging
import random
from typing import Optional, Tuple

from cardmath.errors import best_effort
from cardmath.models import GameState, PlayerStatus, Problem, Room, RoundPhase, RoundRecord
from . import deck
from .registry import RoomRegistry

logger = logging.getLogger(__name__)

MAX_HAND_SIZE = deck.DECK_SIZE // 2
DEFAULT_DIFFICULTY = 'easy'

_ADVANCEABLE = (RoundPhase.RESOLVED, RoundPhase.RESOLVED_PENDING_ADVANCE)
_SELECTABLE = (RoundPhase.DEALT, RoundPhase.AWAITING_SECOND_SELECTION)


def _other(player_number: int) -> int:
    return 2 if player_number == 1 else 1


def _as_number(answer):
    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer
    if isinstance(answer, float) and answer.is_integer():
        return int(answer)
    if isinstance(answer, str):
        try:
            return int(answer.strip())
        except ValueError:
            return None
    return None


class RoundStateMachine:

    def __init__(self, registry: RoomRegistry, default_difficulty: str = DEFAULT_DIFFICULTY, rng=random):
        self.registry = registry
        self.default_difficulty = default_difficulty
        self.rng = rng

    def _room_with_game(self, room_id: str) -> Optional[Room]:
        room = self.registry.get_room(room_id)
        if room is None or room.game is None:
            return None
        return room

    def _refresh_connected(self, room: Room) -> None:
        with best_effort(f"playersConnected hint for room {room.room_id}", logger):
            room.game.players_connected = len(room.players)

    def _hand_size(self, room: Room, difficulty: str, initial_cards: Optional[int]) -> int:
        size = (
            initial_cards
            or room.initial_cards
            or deck.DIFFICULTY_HAND_SIZES.get(difficulty)
            or deck.DEFAULT_HAND_SIZE
        )
        if size > MAX_HAND_SIZE:
            logger.warning(f"[deal-clamp] room={room.room_id} requested={size} max={MAX_HAND_SIZE}")
            size = MAX_HAND_SIZE
        return size

    def init_game(self, room_id: str, difficulty: Optional[str] = None,
                  initial_cards: Optional[int] = None) -> Optional[GameState]:
        room = self.registry.get_room(room_id)
        if room is None:
            return None
        with room.lock:
            difficulty = difficulty or room.difficulty or self.default_difficulty
            size = self._hand_size(room, difficulty, initial_cards)
            room.difficulty = difficulty
            room.initial_cards = size

            hand1, hand2 = deck.deal(size, self.rng)
            state = GameState(difficulty=difficulty, initial_cards=size, hands={1: hand1, 2: hand2})
            for player in room.players.values():
                player.status = PlayerStatus.IN_GAME
            room.game = state
            room.touch()
            self._refresh_connected(room)
        logger.info(f"[deal] room={room_id} difficulty={difficulty} p1={len(hand1)} p2={len(hand2)}")
        return state

    def get_state(self, room_id: str) -> Optional[GameState]:
        room = self.registry.get_room(room_id)
        return room.game if room else None

    def select_card(self, room_id: str, player_number: int, card_id) -> Optional[GameState]:
        room = self._room_with_game(room_id)
        if room is None:
            return None
        with room.lock:
            state = room.game
            self._refresh_connected(room)
            phase = room.phase
            if phase not in _SELECTABLE:
                logger.info(f"[select-ignored] room={room_id} player={player_number} phase={phase.value}")
                return state

            # Only a card literally in the player's hand counts as a selection
            state.selected[player_number] = next(
                (c for c in state.hands[player_number] if c.id == card_id), None
            )
            room.touch()

            first, second = state.selected[1], state.selected[2]
            if not (first and second):
                state.reveal_equation = False
                return state

            problem = Problem(first.value, second.value)
            state.current_problem = problem
            state.correct_answer = problem.answer
            state.answer_options = deck.answer_options(problem.answer, self.rng)
            state.round_in_progress = True
            state.problem_solved = False
            state.solved_by = None
            state.answered = {1: False, 2: False}
            state.submitted_answers = {1: None, 2: None}
            state.reveal_equation = True
        logger.info(f"[problem] room={room_id} {problem.a}x{problem.b}={problem.answer} options={state.answer_options}")
        return state

    def submit_answer(self, room_id: str, player_number: int, answer) -> Optional[Tuple[GameState, bool]]:
        room = self._room_with_game(room_id)
        if room is None:
            return None
        with room.lock:
            state = room.game
            self._refresh_connected(room)
            if not state.round_in_progress or state.problem_solved:
                return state, False

            state.answered[player_number] = True
            state.submitted_answers[player_number] = answer
            room.touch()

            is_correct = _as_number(answer) == state.correct_answer
            if is_correct:
                state.scores[player_number] += 1
                self._resolve(state, player_number)
            elif state.answered[_other(player_number)]:
                # Both answered and neither was right
                self._resolve(state, None)
        logger.info(
            f"[answer] room={room_id} player={player_number} answer={answer!r} "
            f"correct={is_correct} solved={state.problem_solved} solvedBy={state.solved_by}"
        )
        return state, is_correct

    def _resolve(self, state: GameState, solver: Optional[int]) -> None:
        state.problem_solved = True
        state.solved_by = solver
        # Clients hold until the server advances the round
        state.advance_clients = False
        problem = state.current_problem
        state.history.append(RoundRecord(
            a=problem.a,
            b=problem.b,
            correct_answer=state.correct_answer,
            solved_by=solver,
        ))

    def advance_round(self, room_id: str) -> Optional[GameState]:
        room = self._room_with_game(room_id)
        if room is None:
            return None
        with room.lock:
            state = room.game
            self._refresh_connected(room)
            phase = room.phase
            if phase not in _ADVANCEABLE:
                logger.info(f"[advance-ignored] room={room_id} phase={phase.value}")
                return state

            for number, card in state.selected.items():
                if card is not None:
                    state.hands[number] = [c for c in state.hands[number] if c.id != card.id]

            state.game_over = not state.hands[1] or not state.hands[2]
            if state.game_over:
                if state.scores[1] > state.scores[2]:
                    state.winner = 'player1'
                elif state.scores[2] > state.scores[1]:
                    state.winner = 'player2'
                else:
                    state.winner = None

            state.clear_round()
            # No deal animation pending and the server has moved on
            state.deal_complete = True
            state.advance_clients = True
            room.touch()
        logger.info(
            f"[advance] room={room_id} p1={len(state.hands[1])} p2={len(state.hands[2])} "
            f"gameOver={state.game_over} winner={state.winner}"
        )
        return state

    def reset_game(self, room_id: str) -> Optional[GameState]:
        room = self.registry.get_room(room_id)
        if room is None:
            return None
        with room.lock:
            room.game = None
            state = self.init_game(room_id)
            if state is not None:
                state.deal_complete = False
                state.advance_clients = False
        return state
