from .store import MEMORY_PHRASE_PATTERN, MemoryStore
from .topics import describe_topic, extract_topics, mentions_topic, topic_phrase

__all__ = ["MEMORY_PHRASE_PATTERN", "MemoryStore", "describe_topic", "extract_topics", "mentions_topic", "topic_phrase"]
