from enum import Enum

class StepLifecycle(str, Enum):
    """Defines the possible states for a step while a turn is processed."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"
