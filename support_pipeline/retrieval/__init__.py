from .backends import EmbeddingBackend, HttpEmbeddingBackend
from .service import RetrievalMode, RetrievalService

__all__ = ["EmbeddingBackend", "HttpEmbeddingBackend", "RetrievalMode", "RetrievalService"]
