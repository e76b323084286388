import json

import pytest

from arbitration import llm_helper
from arbitration.ai_service import NO_WINNER_DECISION, AIService, AIServiceError
from arbitration.llm_helper import LLMError
from arbitration.models import ProceduralReview, TimelineEvent, TranscriptEntry

TIMELINE_REPLY = json.dumps([
    {'event_description': 'Contract signed', 'timestamp': 'Feb 1', 'agreement_status': 'Agreed'},
    {'event_description': 'Work finished late', 'timestamp': 'Apr 10', 'agreement_status': 'Disputed'},
])


def _anthropic_returning(text, prompts=None):
    def fake(api_key, model, prompt, max_tokens=2000):
        if prompts is not None:
            prompts.append(prompt)
        return text
    return fake


def test_factual_judge_requires_anthropic_key(offline_config):
    service = AIService(offline_config)
    with pytest.raises(AIServiceError, match='Anthropic API key is required for factual analysis'):
        service.analyze_factually('a', 'b')


def test_transcription_requires_openai_key(offline_config):
    service = AIService(offline_config)
    with pytest.raises(AIServiceError, match='OpenAI API key is required for transcription'):
        service.transcribe_audio('a.mp3', b'data')


def test_factual_judge_parses_fenced_timeline(monkeypatch, keyed_config):
    prompts = []
    monkeypatch.setattr(llm_helper, 'call_anthropic',
                        _anthropic_returning(f'```json\n{TIMELINE_REPLY}\n```', prompts))

    timeline = AIService(keyed_config).analyze_factually('Party A says', 'Party B says')

    assert [e.event_description for e in timeline] == ['Contract signed', 'Work finished late']
    assert timeline[1].agreement_status == 'Disputed'
    assert 'Party A Statement: Party A says' in prompts[0]
    assert 'Party B Statement: Party B says' in prompts[0]


def test_factual_judge_accepts_wrapped_timeline(monkeypatch, keyed_config):
    reply = json.dumps({'timeline': json.loads(TIMELINE_REPLY)})
    monkeypatch.setattr(llm_helper, 'call_anthropic', _anthropic_returning(reply))

    timeline = AIService(keyed_config).analyze_factually('a', 'b')
    assert len(timeline) == 2


def test_factual_judge_rejects_unparseable_reply(monkeypatch, keyed_config):
    monkeypatch.setattr(llm_helper, 'call_anthropic', _anthropic_returning('I cannot help with that.'))

    with pytest.raises(AIServiceError, match='Failed to parse factual analysis response'):
        AIService(keyed_config).analyze_factually('a', 'b')


def test_vendor_failure_is_reported_with_stage(monkeypatch, keyed_config):
    def failing(api_key, model, prompt, max_tokens=2000):
        raise LLMError('rate limited')
    monkeypatch.setattr(llm_helper, 'call_anthropic', failing)

    with pytest.raises(AIServiceError, match='Legal analysis failed: rate limited'):
        AIService(keyed_config).analyze_legal_precedents([])


def test_legal_judge_maps_events_to_citations(monkeypatch, keyed_config):
    prompts = []
    reply = json.dumps({
        'Contract signed': ['Contract Law § 101: Formation of Valid Contracts'],
        'Work finished late': 'Contract Law § 205: Time of Performance',
    })
    monkeypatch.setattr(llm_helper, 'call_anthropic', _anthropic_returning(reply, prompts))

    timeline = [TimelineEvent.model_validate(e) for e in json.loads(TIMELINE_REPLY)]
    legal = AIService(keyed_config).analyze_legal_precedents(timeline)

    assert legal['Contract signed'] == ['Contract Law § 101: Formation of Valid Contracts']
    assert legal['Work finished late'] == ['Contract Law § 205: Time of Performance']
    assert 'Consumer Protection § 601' in prompts[0]
    assert '"event_description": "Contract signed"' in prompts[0]


def test_procedural_judge_threshold(offline_config):
    service = AIService(offline_config)
    assert service.review_procedures(60, 100).fairness_assessment == 'Balanced'
    assert service.review_procedures(59, 100).fairness_assessment == 'Unbalanced'
    review = service.review_procedures(0, 0)
    assert review.speaking_time_ratio == 1.0
    assert review.fairness_assessment == 'Balanced'


def test_verdict_judge_receives_case_details(monkeypatch, keyed_config):
    prompts = []
    monkeypatch.setattr(llm_helper, 'call_anthropic', _anthropic_returning('# Verdict', prompts))

    review = ProceduralReview(speaking_time_ratio=0.9, fairness_assessment='Balanced')
    verdict = AIService(keyed_config).draft_verdict([], {}, review, 'Smith v. Jones', 5000)

    assert verdict == '# Verdict'
    assert 'Case Title: Smith v. Jones' in prompts[0]
    assert 'Dispute Amount: $5,000' in prompts[0]
    assert '"fairness_assessment":"Balanced"' in prompts[0]


def _debate_entries():
    return [
        TranscriptEntry(speaker='partyA', text='Cats are better.', isFinal=True),
        TranscriptEntry(speaker='partyB', text='Dogs are loyal.', isFinal=True),
        TranscriptEntry(speaker='ai', text='Why?', isFinal=True),
        TranscriptEntry(speaker='partyA', text='half a sent', isFinal=False),
    ]


def test_gemini_analysis_is_normalized(monkeypatch, keyed_config):
    prompts = []

    def fake_gemini(api_key, model, prompt):
        prompts.append(prompt)
        return '```json\n' + json.dumps({
            'summary': 'Pets.',
            'keyPoints': {'partyA': ['cats'], 'partyB': ['dogs']},
            'agreementPoints': [],
            'disagreementPoints': ['which pet'],
            'conclusion': 'Pets.',
        }) + '\n```'
    monkeypatch.setattr(llm_helper, 'call_gemini', fake_gemini)

    analysis = AIService(keyed_config).analyze_debate(_debate_entries(), 'cats vs dogs', provider='gemini')

    assert analysis.conclusion == 'Based on the debate, Pets.'
    assert analysis.final_decision == NO_WINNER_DECISION
    assert analysis.key_points.party_a == ['cats']
    assert 'Cats are better.' in prompts[0]
    assert 'Why?' not in prompts[0]
    assert 'half a sent' not in prompts[0]


def test_gemini_analysis_rejects_empty_key_points(monkeypatch, keyed_config):
    reply = json.dumps({'summary': 's', 'keyPoints': {'partyA': ['x'], 'partyB': []}, 'conclusion': 'c'})
    monkeypatch.setattr(llm_helper, 'call_gemini', lambda api_key, model, prompt: reply)

    with pytest.raises(AIServiceError, match='Empty key points'):
        AIService(keyed_config).analyze_debate(_debate_entries(), 'ctx')


def test_cohere_analysis_keeps_reply_as_is(monkeypatch, keyed_config):
    reply = json.dumps({'summary': 's', 'keyPoints': {'partyA': [], 'partyB': []},
                        'agreementPoints': ['a'], 'disagreementPoints': [], 'conclusion': 's'})
    monkeypatch.setattr(llm_helper, 'call_cohere', lambda api_key, model, prompt: reply)

    analysis = AIService(keyed_config).analyze_debate(_debate_entries(), 'ctx', provider='cohere')
    assert analysis.conclusion == 's'
    assert analysis.final_decision is None
    assert analysis.agreement_points == ['a']


def test_debate_response_uses_cohere(monkeypatch, keyed_config):
    prompts = []

    def fake_cohere(api_key, model, prompt):
        prompts.append(prompt)
        return 'Interesting! What about fish?'
    monkeypatch.setattr(llm_helper, 'call_cohere', fake_cohere)

    reply = AIService(keyed_config).generate_debate_response(_debate_entries(), 'pets')
    assert reply == 'Interesting! What about fish?'
    assert prompts[0].startswith("You're in a debate about pets.")


def test_unknown_provider(keyed_config):
    with pytest.raises(AIServiceError, match='Unknown analysis provider'):
        AIService(keyed_config).analyze_debate([], 'ctx', provider='llama')
