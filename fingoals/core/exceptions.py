# fingoals/core/exceptions.py
"""Domain errors raised by the goal engine.

The API layer maps these onto HTTP responses; background jobs let them
propagate to the job queue.
"""


class GoalEngineError(Exception):
    """Base class for errors the engine raises on purpose."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class GoalValidationError(GoalEngineError):
    """Invalid input on create/update. Never retried."""


class GoalNotFoundError(GoalEngineError):
    """Goal is absent or belongs to someone else. Never retried."""

    def __init__(self, detail: str = "Goal not found"):
        super().__init__(detail)


class CategoryNotFoundError(GoalValidationError):
    """The referenced category does not exist for the owner."""

    def __init__(self, detail: str = "Category not found"):
        super().__init__(detail)
