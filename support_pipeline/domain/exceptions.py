# support_pipeline/domain/exceptions.py

class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass

class ContentError(PipelineError):
    """Raised when the template bank or knowledge corpus is malformed."""
    pass

class SafetyStageError(PipelineError):
    """Raised when the crisis detector itself fails and the safety fallback must be used."""
    pass

class RetrievalUnavailableError(PipelineError):
    """Raised when the embedding backend cannot serve a request."""
    pass

class ConsistencyCheckError(PipelineError):
    """Raised when the consistency guard cannot compute a correction."""
    pass

class RuleEnforcementError(PipelineError):
    """Raised when a rule handler leaves the turn in an unusable state."""
    pass
