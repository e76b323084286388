import logging
import threading
import uuid
from typing import Callable, Dict, Optional

from .ai_service import AIService
from .config import AIConfig
from .models import Case, CaseResults, Party, PartyTranscripts, ProceduralReview, Statement, TimelineEvent
from .utils import format_amount, is_accepted_audio

logger = logging.getLogger('arbitration.cases')

# (stage id, name, description) in pipeline order
STAGES = [
    ('transcribing', 'Transcribing Audio', 'Converting speech to text using AI'),
    ('factual', 'Analyzing Facts', 'Factual Judge creating timeline of events'),
    ('legal', 'Consulting Legal Precedent', 'Legal Precedent Judge reviewing applicable laws'),
    ('procedural', 'Reviewing Procedures', 'Procedural Judge assessing fairness'),
    ('verdict', 'Drafting Verdict', 'Verdict Drafting Judge synthesizing final decision'),
]

ProgressCallback = Callable[[dict], None]


class CaseError(ValueError):
    pass


class CaseStateError(CaseError):
    """The case is in a status that does not allow the requested action."""


class CaseManager:
    def __init__(self, config: Optional[AIConfig] = None):
        # cases: case_id -> Case
        self.cases: Dict[str, Case] = {}
        self.config = config or AIConfig.from_env()
        self._lock = threading.Lock()

    def create_case(self, title: str, dispute_amount: float,
                    party_a_text: str | None = None, party_b_text: str | None = None) -> Case:
        if not title or not title.strip():
            raise CaseError('case title is required')
        if dispute_amount is None or dispute_amount <= 0:
            raise CaseError('dispute amount must be greater than zero')
        case = Case(
            id=str(uuid.uuid4()),
            title=title.strip(),
            dispute_amount=dispute_amount,
            party_a=Statement(text=party_a_text or None),
            party_b=Statement(text=party_b_text or None),
        )
        self.cases[case.id] = case
        logger.info('created case %s (%s)', case.id, case.title)
        return case

    def get_case(self, case_id: str) -> Optional[Case]:
        return self.cases.get(case_id)

    def _require_case(self, case_id: str) -> Case:
        case = self.get_case(case_id)
        if case is None:
            raise KeyError('case not found')
        return case

    def list_cases(self) -> list[Case]:
        return sorted(self.cases.values(), key=lambda c: c.created_at)

    def attach_statement(self, case_id: str, party: Party, text: str | None = None,
                         audio: bytes | None = None, filename: str | None = None) -> Case:
        case = self._require_case(case_id)
        if party not in ('partyA', 'partyB'):
            raise CaseError(f'unknown party: {party}')
        if case.status == 'processing':
            raise CaseStateError('case is being processed')

        if audio is not None:
            if not is_accepted_audio(filename):
                raise CaseError('audio must be one of .mp3, .wav, .m4a, .aac')
            statement = Statement(audio_filename=filename, audio_data=audio)
        elif text and text.strip():
            statement = Statement(text=text)
        else:
            raise CaseError('a statement needs text or an audio file')

        if party == 'partyA':
            case.party_a = statement
        else:
            case.party_b = statement
        return case

    def reset_case(self, case_id: str) -> Case:
        case = self._require_case(case_id)
        if case.status == 'processing':
            raise CaseStateError('case is being processed')
        case.status = 'idle'
        case.current_stage = None
        case.error = None
        case.results = None
        return case

    def run_pipeline(self, case_id: str, on_progress: Optional[ProgressCallback] = None,
                     config: Optional[AIConfig] = None) -> Case:
        """Run the five arbitration stages for a case, one call after another.

        Stages: transcription -> factual judge -> legal precedent judge ->
        procedural judge -> verdict drafting judge. `on_progress` receives a
        dict before each stage starts and once more when the case completes.
        Any stage failure marks the case `failed` and is re-raised.
        """
        case = self._require_case(case_id)
        for party in ('partyA', 'partyB'):
            if not case.statement(party).is_present:
                raise CaseError(f'missing statement for {party}')

        with self._lock:
            if case.status == 'processing':
                raise CaseStateError('case is already being processed')
            case.status = 'processing'
            case.error = None
            case.results = None

        cfg = config or self.config
        service = AIService(cfg)
        use_mock = not cfg.anthropic_api_key and cfg.mock_when_unconfigured

        def notify(index: int):
            stage, name, description = STAGES[index]
            case.current_stage = stage
            logger.info('case %s: %s', case.id, name)
            if on_progress:
                on_progress({'stage': stage, 'index': index, 'total': len(STAGES),
                             'name': name, 'description': description})

        try:
            notify(0)
            transcript_a = self._transcript_for(service, case.party_a, use_mock, MOCK_TRANSCRIPTS['partyA'])
            transcript_b = self._transcript_for(service, case.party_b, use_mock, MOCK_TRANSCRIPTS['partyB'])

            notify(1)
            if use_mock:
                timeline = [TimelineEvent.model_validate(e) for e in MOCK_TIMELINE]
            else:
                timeline = service.analyze_factually(transcript_a, transcript_b)

            notify(2)
            if use_mock:
                legal_analysis = {k: list(v) for k, v in MOCK_LEGAL_ANALYSIS.items()}
            else:
                legal_analysis = service.analyze_legal_precedents(timeline)

            notify(3)
            if use_mock:
                review = ProceduralReview(speaking_time_ratio=0.85, fairness_assessment='Balanced')
            else:
                review = service.review_procedures(len(transcript_a), len(transcript_b))

            notify(4)
            if use_mock:
                verdict = mock_verdict(case.title, case.dispute_amount)
            else:
                verdict = service.draft_verdict(timeline, legal_analysis, review, case.title, case.dispute_amount)
        except Exception as e:
            logger.exception('case %s failed during %s', case.id, case.current_stage)
            case.status = 'failed'
            case.error = str(e)
            raise

        case.results = CaseResults(
            transcripts=PartyTranscripts(party_a=transcript_a, party_b=transcript_b),
            timeline=timeline,
            legal_analysis=legal_analysis,
            procedural_review=review,
            final_verdict=verdict,
        )
        case.status = 'completed'
        case.current_stage = None
        if on_progress:
            on_progress({'stage': 'completed', 'index': len(STAGES), 'total': len(STAGES),
                         'case': case.model_dump(mode='json')})
        return case

    @staticmethod
    def _transcript_for(service: AIService, statement: Statement, use_mock: bool, canned: str) -> str:
        if statement.text and statement.text.strip():
            return statement.text
        if use_mock and not service.config.openai_api_key:
            return canned
        return service.transcribe_audio(statement.audio_filename, statement.audio_data)


# Demo results served when no judge key is configured.

MOCK_TRANSCRIPTS = {
    'partyA': "I hired the defendant to renovate my kitchen for $5,000. We agreed on a completion date of "
              "March 15th. However, the work was not completed until April 10th, and several items were "
              "damaged during the renovation process, including my refrigerator and countertop.",
    'partyB': "While I acknowledge the delay, it was due to unforeseen complications with the plumbing that "
              "required additional permits. I completed all work to the agreed specifications. The damage "
              "mentioned was pre-existing and documented in my initial assessment.",
}

MOCK_TIMELINE = [
    {'event_description': 'Kitchen renovation contract signed for $5,000', 'timestamp': 'February 1st',
     'agreement_status': 'Agreed'},
    {'event_description': 'Agreed completion date: March 15th', 'timestamp': 'February 1st',
     'agreement_status': 'Agreed'},
    {'event_description': 'Discovery of plumbing complications requiring permits', 'timestamp': 'March 10th',
     'agreement_status': 'Disputed'},
    {'event_description': 'Damage to refrigerator and countertop', 'timestamp': 'March 20th',
     'agreement_status': 'Disputed'},
    {'event_description': 'Work completed', 'timestamp': 'April 10th', 'agreement_status': 'Agreed'},
]

MOCK_LEGAL_ANALYSIS = {
    'Kitchen renovation contract signed for $5,000': ['Contract Law § 101: Formation of Valid Contracts'],
    'Agreed completion date: March 15th': ['Contract Law § 205: Time of Performance'],
    'Discovery of plumbing complications requiring permits': ['Contract Law § 261: Impossibility of Performance'],
    'Damage to refrigerator and countertop': ['Tort Law § 402: Property Damage Liability'],
    'Work completed': ['Contract Law § 365: Substantial Performance'],
}

MOCK_VERDICT_TEMPLATE = """# ARBITRATION VERDICT

## Case: {title}
**Dispute Amount:** ${amount}

## 1. Findings of Fact

Based on the evidence presented, the following timeline of events has been established:

- **February 1st**: Valid contract formed for kitchen renovation ($5,000, completion by March 15th)
- **March 10th**: Unforeseen plumbing complications discovered requiring additional permits
- **March 20th**: Damage occurred to refrigerator and countertop (disputed causation)
- **April 10th**: Work substantially completed (26 days late)

## 2. Conclusions of Law

**Contract Performance**: While the defendant failed to meet the agreed completion date, the delay was partially attributable to unforeseen circumstances requiring regulatory compliance. This constitutes substantial performance with delay damages applicable.

**Property Damage**: The evidence regarding pre-existing damage versus contractor-caused damage is disputed. Under the burden of proof standard, insufficient evidence exists to establish contractor liability for property damage.

**Time of Performance**: The 26-day delay beyond the agreed completion date constitutes a material breach, though not sufficient to void the contract given substantial performance.

## 3. Remedies & Next Steps

**Monetary Award**: The plaintiff is entitled to damages for delayed completion. Standard industry practice allows for 1% of contract value per week of delay.

**Calculation**: $5,000 × 1% × 4 weeks = $200

**Final Order**: Defendant shall pay plaintiff $200 in delay damages. No additional damages are awarded for disputed property damage due to insufficient evidence.

**Case Status**: CLOSED - Damages awarded to plaintiff in the amount of $200.
"""


def mock_verdict(title: str, dispute_amount: float) -> str:
    return MOCK_VERDICT_TEMPLATE.format(title=title, amount=format_amount(dispute_amount))
