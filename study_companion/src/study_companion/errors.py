"""
Error Taxonomy

Exceptions raised inside the study companion, and the structured error slot
the controller exposes to whatever renders its state.
"""

from dataclasses import dataclass
from enum import Enum


class StudyCompanionError(Exception):
    """Base class for all study companion errors."""


class ValidationError(StudyCompanionError):
    """Content or learning style missing when a session is submitted."""


class GenerationError(StudyCompanionError):
    """Any failure of the language-model service or of its response."""


class PersistenceError(StudyCompanionError):
    """Saved session could not be read, parsed or written."""


class InvariantViolation(StudyCompanionError):
    """A screen was entered without the data it requires."""


class ErrorKind(Enum):
    """Errors that reach the banner. Validation stays with the intake form."""
    GENERATION = "generation"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class ErrorInfo:
    """User-visible error: what kind of failure, and the banner text."""
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}
