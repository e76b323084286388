import logging
import time
import uuid
from typing import Dict, Literal, Optional

from .ai_service import AIService
from .models import PARTY_LABELS, DebateAnalysis, Party, TranscriptEntry

logger = logging.getLogger('arbitration.debate')

SILENCE_TIMEOUT = 5.0

DebateState = Literal['idle', 'recording', 'paused', 'finished']


class DebateError(ValueError):
    pass


class DebateSession:
    """Live capture state for one debate.

    The browser runs speech recognition and forwards each result here; this
    object decides whether a result extends the in-progress utterance or
    starts a new one, and when silence should stop the recording.
    `now` arguments are monotonic seconds and default to time.monotonic().
    """

    def __init__(self, context: str, session_id: Optional[str] = None,
                 silence_timeout: float = SILENCE_TIMEOUT):
        self.id = session_id or str(uuid.uuid4())
        self.context = context
        self.silence_timeout = silence_timeout
        self.current_speaker: Party = 'partyA'
        self.state: DebateState = 'idle'
        self.transcripts: list[TranscriptEntry] = []
        self.analysis: Optional[DebateAnalysis] = None
        self.last_activity: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self.state == 'recording'

    def ensure_open(self):
        if self.state == 'finished':
            raise DebateError('debate is finished; reset it to start a new one')

    def start_recording(self, now: Optional[float] = None) -> bool:
        self.ensure_open()
        if self.state != 'idle':
            return False
        self.state = 'recording'
        self.last_activity = time.monotonic() if now is None else now
        logger.info('debate %s: recording %s', self.id, PARTY_LABELS[self.current_speaker])
        return True

    def stop_recording(self) -> bool:
        if self.state not in ('recording', 'paused'):
            return False
        self.state = 'idle'
        # mark the current transcript as final
        last = self.transcripts[-1] if self.transcripts else None
        if last is not None and last.speaker == self.current_speaker and not last.is_final:
            last.is_final = True
        self.last_activity = None
        return True

    def pause(self) -> bool:
        if self.state != 'recording':
            return False
        self.state = 'paused'
        return True

    def resume(self, now: Optional[float] = None) -> bool:
        if self.state != 'paused':
            return False
        self.state = 'recording'
        self.last_activity = time.monotonic() if now is None else now
        return True

    def add_result(self, text: str, is_final: bool = False, confidence: float = 1.0,
                   duration: float = 0.0, now: Optional[float] = None) -> Optional[TranscriptEntry]:
        """Apply one recognition result. Ignored unless recording."""
        if self.state != 'recording':
            return None
        self.last_activity = time.monotonic() if now is None else now

        last = self.transcripts[-1] if self.transcripts else None
        if last is not None and last.speaker == self.current_speaker and not last.is_final:
            # rebuilt so a bad result leaves the open entry untouched
            updated = TranscriptEntry(speaker=last.speaker, text=text, timestamp=last.timestamp,
                                      is_final=is_final, confidence=confidence, duration=duration)
            self.transcripts[-1] = updated
            return updated

        entry = TranscriptEntry(speaker=self.current_speaker, text=text, is_final=is_final,
                                confidence=confidence, duration=duration)
        self.transcripts.append(entry)
        return entry

    def check_silence(self, now: Optional[float] = None) -> bool:
        """Stop recording if no speech arrived within the silence timeout."""
        if self.state != 'recording' or self.last_activity is None:
            return False
        now = time.monotonic() if now is None else now
        if now - self.last_activity < self.silence_timeout:
            return False
        logger.info('debate %s: no speech for %.0fs, stopping', self.id, self.silence_timeout)
        return self.stop_recording()

    def recognition_ended(self, now: Optional[float] = None) -> str:
        """The recognizer stopped on its own.

        Returns 'restart' when the client should restart recognition (still
        recording and not yet silent), 'stopped' when it timed out, or 'idle'
        when nothing was recording.
        """
        if self.state != 'recording':
            return 'idle'
        if self.check_silence(now):
            return 'stopped'
        return 'restart'

    def switch_speaker(self) -> Party:
        self.ensure_open()
        self.stop_recording()
        self.current_speaker = 'partyB' if self.current_speaker == 'partyA' else 'partyA'
        return self.current_speaker

    def finish(self, service: AIService, provider: str = 'gemini') -> DebateAnalysis:
        self.ensure_open()
        self.stop_recording()
        if not self.transcripts:
            raise DebateError('nothing has been recorded yet')
        analysis = service.analyze_debate(self.transcripts, self.context, provider=provider)
        self.analysis = analysis
        self.state = 'finished'
        return analysis

    def add_ai_reply(self, text: str) -> TranscriptEntry:
        entry = TranscriptEntry(speaker='ai', text=text, is_final=True)
        self.transcripts.append(entry)
        return entry

    def respond(self, service: AIService) -> TranscriptEntry:
        self.ensure_open()
        reply = service.generate_debate_response(self.transcripts, self.context)
        return self.add_ai_reply(reply)

    def reset(self):
        self.current_speaker = 'partyA'
        self.state = 'idle'
        self.transcripts = []
        self.analysis = None
        self.last_activity = None

    def snapshot(self) -> dict:
        return {
            'session_id': self.id,
            'context': self.context,
            'state': self.state,
            'current_speaker': self.current_speaker,
            'transcripts': [t.model_dump(by_alias=True) for t in self.transcripts],
            'analysis': self.analysis.model_dump(by_alias=True) if self.analysis else None,
        }


class DebateManager:
    def __init__(self):
        self.sessions: Dict[str, DebateSession] = {}

    def create_session(self, context: str) -> DebateSession:
        session = DebateSession(context)
        self.sessions[session.id] = session
        return session

    def get_session(self, sid: str) -> Optional[DebateSession]:
        return self.sessions.get(sid)
