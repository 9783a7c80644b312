"""Session domain services: deck building, turn rules and timers.

This package contains pure(ish) game logic that is driven by the session
dispatcher, keeping Socket.IO transport concerns separated from core game
mechanics.
"""
from .deck import build_deck, fisher_yates
from .errors import InvalidInput, NoSessionAvailable, NotYourTurn, SessionError, SessionNotFound
from .registry import SessionRegistry
from .session import ACTIVE, FORMING, OVER, Card, Player, Session
from .timers import BackgroundScheduler, TurnTimerManager
