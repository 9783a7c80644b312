"""Errors reported back to the client that issued an action.

Each error maps to the Socket.IO event the caller receives. None of them
are fatal: the session keeps running and other sessions are unaffected.
"""


class SessionError(Exception):
    event = 'error'
    default_message = 'Invalid request'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'message': self.message}


class InvalidInput(SessionError):
    event = 'error'
    default_message = 'Invalid input'


class NotYourTurn(SessionError):
    event = 'not_your_turn'
    default_message = 'It is not your turn'


class NoSessionAvailable(SessionError):
    event = 'no_game_available'
    default_message = 'No game available. Add a card set and create a new game.'


class SessionNotFound(SessionError):
    event = 'game_not_found'
    default_message = 'Game not found'
