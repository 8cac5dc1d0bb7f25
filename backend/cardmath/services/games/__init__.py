"""Game domain services: rooms, rounds, timers, presence and rematches.

Socket handlers and HTTP routes import from here, keeping transport
concerns separated from the authoritative game state.
"""
from .hub import GameHub, parse_room_options

__all__ = ['GameHub', 'parse_room_options']
