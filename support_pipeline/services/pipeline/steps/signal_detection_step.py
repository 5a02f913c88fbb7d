from .base_step import PipelineStep
from support_pipeline.detectors.casual import analyze_fillers, is_greeting, is_minor_incident, is_small_talk, resists_meaning
from support_pipeline.detectors.emotions import detect_emotions
from support_pipeline.domain.models import SignalReport
from support_pipeline.domain.turn_context import TurnContext
from support_pipeline.services.pipeline.resource_provider import ResourceProvider

class SignalDetectionStep(PipelineStep):
    """Runs the non-crisis lexical detectors over the utterance."""

    @property
    def name(self) -> str:
        return "signal_detection"

    def get_required_inputs(self) -> list[str]:
        return ["utterance"]

    def get_outputs(self) -> list[str]:
        return ["signals"]

    async def execute(self, context: TurnContext, resources: ResourceProvider) -> TurnContext:
        context.log(f"Executing step: {self.name}")
        utterance = context.utterance
        filler = analyze_fillers(utterance)
        # Emotions and incidents are read from the filler-free text.
        cleaned = filler.cleaned_text or utterance
        signals = SignalReport(
            specialized_concern=resources.get_concern_detector().detect(utterance),
            filler=filler,
            register_profile=resources.get_register_detector().analyze(utterance),
            emotions=detect_emotions(cleaned),
            is_greeting=is_greeting(utterance),
            is_small_talk=is_small_talk(utterance),
            is_minor_incident=is_minor_incident(cleaned),
            resists_meaning=resists_meaning(utterance),
        )
        context.set("signals", signals)
        if signals.specialized_concern is not None:
            context.concern_tag = signals.specialized_concern.tag
            context.log(f"Specialized concern: {signals.specialized_concern.tag.value}.")
        return context
