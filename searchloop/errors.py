"""Error taxonomy for the search engine.

Only ``OracleError`` and ``FatalOrchestratorError`` are ever raised. Adapter
failures travel as ``AdapterError`` values (see ``sources.models``) and a
spent iteration budget is a normal terminal reason, not an exception.
"""

from __future__ import annotations


class SearchLoopError(Exception):
    """Base class for all searchloop errors."""


class ConfigError(SearchLoopError):
    """Configuration is missing or invalid."""


class OracleError(SearchLoopError):
    """An oracle call failed or returned output that could not be used."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class FatalOrchestratorError(SearchLoopError):
    """An unexpected exception escaped one of the orchestrator's stages."""

    def __init__(self, stage: str, iteration: int, query: str, cause: BaseException):
        self.stage = stage
        self.iteration = iteration
        self.query = query
        self.cause = cause
        super().__init__(
            f"Stage {stage} failed at iteration {iteration} for query '{query}': "
            f"{type(cause).__name__}: {cause}"
        )


# Terminal reason recorded when the loop stops because the budget is spent.
BUDGET_EXCEEDED = "budget_exceeded"
