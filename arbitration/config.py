import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

KEY_ENV_VARS = {
    'openai_api_key': 'OPENAI_API_KEY',
    'anthropic_api_key': 'ANTHROPIC_API_KEY',
    'gemini_api_key': 'GEMINI_API_KEY',
    'cohere_api_key': 'COHERE_API_KEY',
}


class AIConfig(BaseModel):
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    cohere_api_key: Optional[str] = None

    transcription_model: str = 'whisper-1'
    judge_model: str = 'claude-3-5-sonnet-20241022'
    gemini_model: str = 'gemini-2.0-flash'
    cohere_model: str = 'command-a-03-2025'
    # used only for the streamed debate reply
    openai_model: str = 'gpt-4o-mini'

    # serve the canned demo verdict when no judge key is set
    mock_when_unconfigured: bool = True

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> 'AIConfig':
        """Build a config from the process environment (and `.env` if present)."""
        if load_dotenv_file:
            load_dotenv()
        values = {field: os.getenv(env) or None for field, env in KEY_ENV_VARS.items()}
        for field, env in (
            ('transcription_model', 'TRANSCRIPTION_MODEL'),
            ('judge_model', 'JUDGE_MODEL'),
            ('gemini_model', 'GEMINI_MODEL'),
            ('cohere_model', 'COHERE_MODEL'),
            ('openai_model', 'OPENAI_MODEL'),
        ):
            if os.getenv(env):
                values[field] = os.getenv(env)
        mock = os.getenv('ARBITRATION_MOCK_WHEN_UNCONFIGURED')
        if mock is not None:
            values['mock_when_unconfigured'] = mock.strip().lower() not in ('0', 'false', 'no', '')
        return cls(**values)

    def merged(self, overrides: dict) -> 'AIConfig':
        """Return a copy with every non-empty key in `overrides` applied."""
        update = {k: v.strip() for k, v in overrides.items()
                  if k in KEY_ENV_VARS and isinstance(v, str) and v.strip()}
        return self.model_copy(update=update)

    def status(self) -> dict:
        return {field: bool(getattr(self, field)) for field in KEY_ENV_VARS}
