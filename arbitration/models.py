from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Party = Literal['partyA', 'partyB']
Speaker = Literal['partyA', 'partyB', 'ai']
CaseStatus = Literal['idle', 'processing', 'completed', 'failed']
AgreementStatus = Literal['Agreed', 'Disputed', 'Unilateral']
Fairness = Literal['Balanced', 'Unbalanced']

PARTY_LABELS = {'partyA': 'Party A', 'partyB': 'Party B', 'ai': 'AI'}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TranscriptEntry(BaseModel):
    """One captured utterance. Wire format uses the browser's camelCase names."""
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    speaker: Speaker
    text: str
    timestamp: str = Field(default_factory=utc_now_iso)
    is_final: bool = Field(default=False, alias='isFinal')
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    duration: float = Field(default=0.0, ge=0.0)


class TimelineEvent(BaseModel):
    event_description: str
    timestamp: str = ''
    agreement_status: AgreementStatus = 'Unilateral'


class ProceduralReview(BaseModel):
    speaking_time_ratio: float
    fairness_assessment: Fairness


class PartyTranscripts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    party_a: str = Field(default='', alias='partyA')
    party_b: str = Field(default='', alias='partyB')


class CaseResults(BaseModel):
    transcripts: PartyTranscripts
    timeline: list[TimelineEvent]
    legal_analysis: dict[str, list[str]]
    procedural_review: ProceduralReview
    final_verdict: str


class Statement(BaseModel):
    """A party's submission: typed text, or audio awaiting transcription."""
    text: str | None = None
    audio_filename: str | None = None
    audio_data: bytes | None = Field(default=None, exclude=True)

    @property
    def has_audio(self) -> bool:
        return self.audio_data is not None

    @property
    def is_present(self) -> bool:
        return bool(self.text and self.text.strip()) or self.has_audio


class Case(BaseModel):
    id: str
    title: str
    dispute_amount: float
    party_a: Statement = Field(default_factory=Statement)
    party_b: Statement = Field(default_factory=Statement)
    status: CaseStatus = 'idle'
    current_stage: str | None = None
    error: str | None = None
    results: CaseResults | None = None
    created_at: str = Field(default_factory=utc_now_iso)

    def statement(self, party: Party) -> Statement:
        return self.party_a if party == 'partyA' else self.party_b


class KeyPoints(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    party_a: list[str] = Field(default_factory=list, alias='partyA')
    party_b: list[str] = Field(default_factory=list, alias='partyB')


class DebateAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ''
    key_points: KeyPoints = Field(default_factory=KeyPoints, alias='keyPoints')
    agreement_points: list[str] = Field(default_factory=list, alias='agreementPoints')
    disagreement_points: list[str] = Field(default_factory=list, alias='disagreementPoints')
    conclusion: str = ''
    final_decision: str | None = Field(default=None, alias='finalDecision')


# request bodies

class CaseSubmission(BaseModel):
    title: str
    dispute_amount: float
    party_a_text: str | None = None
    party_b_text: str | None = None


class KeyConfigUpdate(BaseModel):
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None
    cohere_api_key: str | None = None


class DebateCreate(BaseModel):
    context: str


class DebateFinish(BaseModel):
    provider: Literal['gemini', 'cohere'] = 'gemini'
