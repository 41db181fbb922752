"""
Exception hierarchy for trivia game operations.
"""


class TriviaError(Exception):
    """Base exception for trivia errors."""
    pass


class ValidationError(TriviaError):
    """Raised when a user-supplied value is out of range."""
    pass


class SessionConflictError(TriviaError):
    """Raised when a game is already running in the channel."""
    pass


class TransientStoreError(TriviaError):
    """Raised when the store (or an upstream service) cannot complete an operation."""
    pass


class QuestionProviderUnavailable(TransientStoreError):
    """Raised when the question bank cannot be reached or returns garbage."""
    pass


class StaleOperation(TriviaError):
    """Raised when a round was already resolved by someone else."""

    def __init__(self, session_id: int, expected_index: int):
        super().__init__(f"Round {expected_index} of session {session_id} already resolved")
        self.session_id = session_id
        self.expected_index = expected_index
