"""Exception types raised by the assessment core.

Only configuration problems and lookups of unknown quizzes/sessions are
raised. Malformed answers are never errors: the grader treats them as
incorrect.
"""


class AssessmentError(Exception):
    """Base class for errors raised by the assessment core."""


class ConfigurationError(AssessmentError):
    """A quiz or exam definition cannot produce a session."""


class NoQuestionsAvailable(ConfigurationError):
    """Raised when sampling yields an empty session."""

    def __init__(self, message: str = "no questions available"):
        super().__init__(message)


class UnknownQuiz(AssessmentError):
    """No quiz or exam definition exists for the requested id."""


class UnknownSession(AssessmentError):
    """No live session exists for the requested id (expired or never started)."""


class AnswersHidden(AssessmentError):
    """Correct answers may not be revealed under the quiz's show-answers policy."""


class ResultUnavailable(AssessmentError):
    """A submitted attempt has no stored result because finalizing it failed."""
