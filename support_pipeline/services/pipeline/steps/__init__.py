from .base_step import PipelineStep
from .crisis_detection_step import CrisisDetectionStep
from .signal_detection_step import SignalDetectionStep
from .memory_recall_step import MemoryRecallStep
from .draft_composition_step import DraftCompositionStep
from .retrieval_augmentation_step import RetrievalAugmentationStep
from .consistency_guard_step import ConsistencyGuardStep
from .meaning_assessment_step import MeaningAssessmentStep
from .repetition_check_step import RepetitionCheckStep
from .personality_variation_step import PersonalityVariationStep
from .memory_reference_step import MemoryReferenceStep
from .meaning_guard_step import MeaningGuardStep

# This registry maps step names (from the pipeline YAML) to their instances.
# When you create a new step, you must import it and add it to this dictionary.
ALL_STEPS = {
    "crisis_detection": CrisisDetectionStep(),
    "signal_detection": SignalDetectionStep(),
    "memory_recall": MemoryRecallStep(),
    "draft_composition": DraftCompositionStep(),
    "retrieval_augmentation": RetrievalAugmentationStep(),
    "consistency_guard": ConsistencyGuardStep(),
    "meaning_assessment": MeaningAssessmentStep(),
    "repetition_check": RepetitionCheckStep(),
    "personality_variation": PersonalityVariationStep(),
    "memory_reference": MemoryReferenceStep(),
    "meaning_guard": MeaningGuardStep(),
}

__all__ = ["ALL_STEPS", "PipelineStep"]
