"""In-memory store backend."""

from .evaluator import DEFAULT_OPERATORS, PredicateEvaluator
from .store import InMemoryStoreClient

__all__ = ["DEFAULT_OPERATORS", "InMemoryStoreClient", "PredicateEvaluator"]
