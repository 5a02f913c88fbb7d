import time
import uuid
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Pydantic models for every structure that crosses a stage boundary.
# Turns and derived records are frozen so stages cannot mutate shared state.

class Speaker(str, Enum):
    USER = "user"
    AGENT = "agent"

class ConcernTag(str, Enum):
    SUICIDE = "suicide"
    SELF_HARM = "self-harm"
    ABUSE = "abuse"
    MEDICAL = "medical"
    CRISIS = "crisis"
    EATING_DISORDER = "eating-disorder"
    SUBSTANCE_USE = "substance-use"
    GAMBLING = "gambling"

CRISIS_CONCERNS = frozenset({
    ConcernTag.SUICIDE, ConcernTag.SELF_HARM, ConcernTag.ABUSE, ConcernTag.MEDICAL, ConcernTag.CRISIS
})

class PersonalityMode(str, Enum):
    CURIOUS = "curious"
    EMPATHETIC = "empathetic"
    REFLECTIVE = "reflective"
    DIRECT = "direct"
    ANALYTICAL = "analytical"
    WARM = "warm"
    GENTLE = "gentle"
    EXISTENTIAL = "existential"
    MEANING_FOCUSED = "meaning-focused"
    WARM_SOCIAL = "warm-social"

class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    speaker: Speaker
    timestamp: float = Field(default_factory=time.time)
    concern_tag: Optional[ConcernTag] = None
    personality_mode: Optional[PersonalityMode] = None

class ConversationHistory(BaseModel):
    """Ordered turns of one session, most recent last. Only the orchestrator appends."""
    turns: List[ConversationTurn] = Field(default_factory=list)

    def append(self, turn: ConversationTurn) -> None:
        self.turns.append(turn)

    def __len__(self) -> int:
        return len(self.turns)

    def fingerprint(self) -> Tuple[str, ...]:
        return tuple(turn.id for turn in self.turns)

    def user_turns(self) -> List[ConversationTurn]:
        return [t for t in self.turns if t.speaker == Speaker.USER]

    def agent_turns(self) -> List[ConversationTurn]:
        return [t for t in self.turns if t.speaker == Speaker.AGENT]

    def recent_user_texts(self, limit: int) -> List[str]:
        return [t.text for t in self.user_turns()[-limit:]] if limit > 0 else []

    def recent_agent_texts(self, limit: int) -> List[str]:
        return [t.text for t in self.agent_turns()[-limit:]] if limit > 0 else []

    def last_agent_mode(self) -> Optional[PersonalityMode]:
        for turn in reversed(self.turns):
            if turn.speaker == Speaker.AGENT:
                return turn.personality_mode
        return None

class MemoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    dominant_topics: Tuple[str, ...] = ()
    tracked_emotions: FrozenSet[str] = frozenset()
    turn_count: int = 0

    def top_topics(self, n: int) -> List[str]:
        return list(self.dominant_topics[:n])

    def is_empty(self) -> bool:
        return not self.dominant_topics and not self.tracked_emotions

class CrisisCategory(str, Enum):
    SUICIDE = "suicide"
    SELF_HARM = "self-harm"
    ABUSE = "abuse"
    MEDICAL = "medical"
    NONE = "none"

# Most severe first.
CRISIS_SEVERITY_ORDER = [
    CrisisCategory.SUICIDE, CrisisCategory.SELF_HARM, CrisisCategory.ABUSE, CrisisCategory.MEDICAL, CrisisCategory.NONE
]

class CrisisSeverity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

class CrisisAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_crisis: bool = False
    category: CrisisCategory = CrisisCategory.NONE
    severity: CrisisSeverity = CrisisSeverity.LOW
    matched_phrase: Optional[str] = None

    def concern_tag(self) -> Optional[ConcernTag]:
        if not self.is_crisis or self.category == CrisisCategory.NONE:
            return None
        return ConcernTag(self.category.value)

class SpecializedConcern(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: ConcernTag
    matched_phrase: str

class FillerProfile(BaseModel):
    filler_count: int = 0
    word_count: int = 0
    density: float = 0.0
    hesitant: bool = False
    cleaned_text: str = ""

class RegisterProfile(BaseModel):
    language_style: str = "neutral"
    occupation_type: Optional[str] = None
    casual_markers: int = 0

    @property
    def is_plain(self) -> bool:
        return self.language_style in ("casual", "colloquial")

class SignalReport(BaseModel):
    """Non-crisis lexical signals for one utterance."""
    specialized_concern: Optional[SpecializedConcern] = None
    filler: FillerProfile = Field(default_factory=FillerProfile)
    register_profile: RegisterProfile = Field(default_factory=RegisterProfile)
    emotions: List[str] = Field(default_factory=list)
    is_greeting: bool = False
    is_small_talk: bool = False
    is_minor_incident: bool = False
    resists_meaning: bool = False

class RetrievalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    source_id: str = "none"

class RuleViolation(BaseModel):
    rule_name: str
    priority: float
    detected: bool

class ConsistencyResult(BaseModel):
    is_hallucination: bool = False
    corrected: Optional[str] = None
    flagged_claims: List[str] = Field(default_factory=list)

class Recommendation(str, Enum):
    INCREASE_SPONTANEITY = "increase_spontaneity"
    CHANGE_APPROACH = "change_approach"
    FORCE_PERSPECTIVE_SHIFT = "force_perspective_shift"

class RepetitionReport(BaseModel):
    is_repetitive: bool = False
    score: float = 0.0
    recommendations: List[Recommendation] = Field(default_factory=list)
    signals: Dict[str, float] = Field(default_factory=dict)

class ResponseApproach(BaseModel):
    kind: str = "default"
    spontaneity_level: int = 60
    creativity_level: int = 60

class VariationResult(BaseModel):
    text: str
    mode: PersonalityMode
    regenerated: bool = False
    meaning_applied: bool = False

class TurnResult(BaseModel):
    reply: str
    concern_tag: Optional[ConcernTag] = None
    history: ConversationHistory
