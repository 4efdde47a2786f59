"""Document and prediction stores (in-memory and SQL)."""

from tipster.stores.base import DocumentStore, PredictionStore
from tipster.stores.memory import InMemoryDocumentStore, InMemoryPredictionStore

__all__ = [
    "DocumentStore",
    "PredictionStore",
    "InMemoryDocumentStore",
    "InMemoryPredictionStore",
]
