import json
import logging
from typing import Iterable

from pydantic import ValidationError

from . import llm_helper, prompts
from .config import AIConfig
from .llm_helper import LLMError
from .models import DebateAnalysis, ProceduralReview, TimelineEvent, TranscriptEntry
from .utils import (format_amount, is_accepted_audio, parse_json_reply, speaking_ratio,
                    split_party_transcripts)

logger = logging.getLogger('arbitration.judges')

BALANCED_THRESHOLD = 0.6
NO_WINNER_DECISION = 'Unable to determine a clear winner based on the debate.'


class AIServiceError(RuntimeError):
    pass


class AIService:
    """The arbitration judges. Each judge is one prompt sent to a hosted model."""

    def __init__(self, config: AIConfig):
        self.config = config

    def transcribe_audio(self, filename: str, data: bytes) -> str:
        if not self.config.openai_api_key:
            raise AIServiceError('OpenAI API key is required for transcription')
        if not is_accepted_audio(filename):
            raise AIServiceError(f'Unsupported audio format: {filename}')
        try:
            return llm_helper.transcribe(self.config.openai_api_key, filename, data,
                                         model=self.config.transcription_model)
        except LLMError as e:
            raise AIServiceError(f'Transcription failed: {e}') from e

    def _ask_judge(self, stage: str, prompt: str, max_tokens: int) -> str:
        if not self.config.anthropic_api_key:
            raise AIServiceError(f'Anthropic API key is required for {stage.lower()}')
        try:
            return llm_helper.call_anthropic(self.config.anthropic_api_key, self.config.judge_model,
                                             prompt, max_tokens=max_tokens)
        except LLMError as e:
            raise AIServiceError(f'{stage} failed: {e}') from e

    def analyze_factually(self, transcript_a: str, transcript_b: str) -> list[TimelineEvent]:
        prompt = prompts.FACTUAL_JUDGE_PROMPT.format(transcript_a=transcript_a, transcript_b=transcript_b)
        content = self._ask_judge('Factual analysis', prompt, max_tokens=2000)

        data = parse_json_reply(content)
        if isinstance(data, dict):
            data = data.get('timeline')
        if not isinstance(data, list):
            logger.error('Failed to parse factual analysis JSON: %s', content)
            raise AIServiceError('Failed to parse factual analysis response')
        try:
            return [TimelineEvent.model_validate(item) for item in data]
        except ValidationError as e:
            logger.error('Factual analysis has unexpected shape: %s', content)
            raise AIServiceError('Failed to parse factual analysis response') from e

    def analyze_legal_precedents(self, timeline: list[TimelineEvent]) -> dict[str, list[str]]:
        prompt = prompts.LEGAL_JUDGE_PROMPT.format(
            statutes=prompts.LEGAL_STATUTES,
            timeline=json.dumps([e.model_dump() for e in timeline]),
        )
        content = self._ask_judge('Legal analysis', prompt, max_tokens=2000)

        data = parse_json_reply(content)
        if not isinstance(data, dict):
            logger.error('Failed to parse legal analysis JSON: %s', content)
            raise AIServiceError('Failed to parse legal analysis response')
        # a lone citation string is normalized to a one-item list
        return {str(k): ([str(c) for c in v] if isinstance(v, list) else [str(v)])
                for k, v in data.items()}

    def review_procedures(self, party_a_length: int, party_b_length: int) -> ProceduralReview:
        ratio = speaking_ratio(party_a_length, party_b_length)
        fairness = 'Balanced' if ratio >= BALANCED_THRESHOLD else 'Unbalanced'
        return ProceduralReview(speaking_time_ratio=ratio, fairness_assessment=fairness)

    def draft_verdict(self, timeline: list[TimelineEvent], legal_analysis: dict[str, list[str]],
                      procedural_review: ProceduralReview, case_title: str, dispute_amount: float) -> str:
        prompt = prompts.VERDICT_JUDGE_PROMPT.format(
            title=case_title,
            amount=format_amount(dispute_amount),
            timeline=json.dumps([e.model_dump() for e in timeline]),
            legal_analysis=json.dumps(legal_analysis),
            procedural_review=procedural_review.model_dump_json(),
        )
        return self._ask_judge('Verdict drafting', prompt, max_tokens=4000)

    def analyze_debate(self, transcripts: Iterable[TranscriptEntry], context: str,
                       provider: str = 'gemini') -> DebateAnalysis:
        party_a, party_b = split_party_transcripts(transcripts)
        if provider == 'gemini':
            template = prompts.DEBATE_ANALYSIS_PROMPT
        elif provider == 'cohere':
            template = prompts.DEBATE_ANALYSIS_PROMPT_COHERE
        else:
            raise AIServiceError(f'Unknown analysis provider: {provider}')
        prompt = template.format(context=context, party_a=party_a, party_b=party_b)

        try:
            if provider == 'gemini':
                text = llm_helper.call_gemini(self.config.gemini_api_key, self.config.gemini_model, prompt)
            else:
                text = llm_helper.call_cohere(self.config.cohere_api_key, self.config.cohere_model, prompt)
        except LLMError as e:
            raise AIServiceError(f'Failed to analyze debate transcripts: {e}') from e

        data = parse_json_reply(text)
        if not isinstance(data, dict):
            logger.error('Failed to parse debate analysis JSON from %s: %s', provider, text)
            raise AIServiceError('Failed to analyze debate transcripts')
        try:
            analysis = DebateAnalysis.model_validate(data)
        except ValidationError as e:
            raise AIServiceError('Failed to analyze debate transcripts') from e

        if provider == 'gemini':
            if not analysis.key_points.party_a or not analysis.key_points.party_b:
                raise AIServiceError('Empty key points detected')
            if analysis.summary == analysis.conclusion:
                analysis.conclusion = f'Based on the debate, {analysis.conclusion}'
            if not analysis.final_decision:
                analysis.final_decision = NO_WINNER_DECISION
        return analysis

    def debate_response_prompt(self, transcripts: Iterable[TranscriptEntry], context: str) -> str:
        party_a, party_b = split_party_transcripts(transcripts)
        return prompts.DEBATE_RESPONSE_PROMPT.format(context=context, party_a=party_a, party_b=party_b)

    def generate_debate_response(self, transcripts: Iterable[TranscriptEntry], context: str) -> str:
        prompt = self.debate_response_prompt(transcripts, context)
        try:
            return llm_helper.call_cohere(self.config.cohere_api_key, self.config.cohere_model, prompt)
        except LLMError as e:
            raise AIServiceError(f'Failed to generate debate response: {e}') from e
