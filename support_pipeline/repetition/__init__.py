from .detector import FEEDBACK_LOOP_PATTERN, RepetitionDetector, structure_similarity

__all__ = ["FEEDBACK_LOOP_PATTERN", "RepetitionDetector", "structure_similarity"]
