import json
import re
from typing import Any, Iterable, Optional, Tuple

from .models import TranscriptEntry

FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?|\n?\s*```\s*$", re.IGNORECASE)

ACCEPTED_AUDIO_EXTENSIONS = ('.mp3', '.wav', '.m4a', '.aac')


def strip_code_fences(text: str) -> str:
    return FENCE_RE.sub('', text or '').strip()


def parse_json_reply(text: str) -> Optional[Any]:
    """Parse a model reply that should be JSON, tolerating ```json fences.

    Falls back to the outermost [...] or {...} span when the model wraps the
    JSON in prose. Returns None if nothing parses.
    """
    if not text:
        return None
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    for open_ch, close_ch in (('[', ']'), ('{', '}')):
        start = cleaned.find(open_ch)
        end = cleaned.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                continue
    return None


def split_party_transcripts(entries: Iterable[TranscriptEntry]) -> Tuple[str, str]:
    """Join final party statements per speaker; interim and AI entries are dropped."""
    party_a, party_b = [], []
    for e in entries:
        if not e.is_final:
            continue
        if e.speaker == 'partyA':
            party_a.append(e.text)
        elif e.speaker == 'partyB':
            party_b.append(e.text)
    return '\n'.join(party_a), '\n'.join(party_b)


def speaking_ratio(len_a: int, len_b: int) -> float:
    longest = max(len_a, len_b)
    if longest <= 0:
        return 1.0
    return min(len_a, len_b) / longest


def is_accepted_audio(filename: str | None) -> bool:
    if not filename:
        return False
    return filename.lower().endswith(ACCEPTED_AUDIO_EXTENSIONS)


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return f'{int(amount):,}'
    return f'{amount:,.2f}'
