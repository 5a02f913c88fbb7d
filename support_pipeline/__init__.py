"""Response-processing pipeline for a conversational support agent."""

__version__ = "0.1.0"
