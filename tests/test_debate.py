import pytest
from pydantic import ValidationError

from arbitration.debate import DebateError, DebateManager, DebateSession
from arbitration.models import DebateAnalysis


class FakeService:
    def __init__(self, reply='What makes you say that?'):
        self.reply = reply
        self.analyzed = None

    def analyze_debate(self, transcripts, context, provider='gemini'):
        self.analyzed = (list(transcripts), context, provider)
        return DebateAnalysis(summary='s', conclusion='c')

    def generate_debate_response(self, transcripts, context):
        return self.reply


def test_results_ignored_unless_recording():
    session = DebateSession('ctx')
    assert session.add_result('hello', now=0) is None
    assert session.transcripts == []


def test_interim_results_update_the_open_entry():
    session = DebateSession('ctx')
    session.start_recording(now=0)
    session.add_result('I think', now=1)
    session.add_result('I think cats', now=2, confidence=0.7)
    session.add_result('I think cats win', is_final=True, now=3, duration=2.5)
    session.add_result('Also', now=4)

    assert [(e.text, e.is_final) for e in session.transcripts] == [
        ('I think cats win', True),
        ('Also', False),
    ]
    assert session.transcripts[0].duration == 2.5


def test_stop_finalizes_the_open_entry():
    session = DebateSession('ctx')
    session.start_recording(now=0)
    session.add_result('unfinished thought', now=1)
    assert session.stop_recording()
    assert session.state == 'idle'
    assert session.transcripts[-1].is_final
    assert not session.stop_recording()


def test_start_twice_is_a_noop():
    session = DebateSession('ctx')
    assert session.start_recording(now=0)
    assert not session.start_recording(now=1)


def test_silence_stops_recording():
    session = DebateSession('ctx', silence_timeout=5)
    session.start_recording(now=0)
    session.add_result('hello', now=1)
    assert not session.check_silence(now=5.9)
    assert session.check_silence(now=6)
    assert session.state == 'idle'
    assert session.transcripts[-1].is_final


def test_pause_keeps_entry_open_and_skips_silence_check():
    session = DebateSession('ctx', silence_timeout=5)
    session.start_recording(now=0)
    session.add_result('so the point', now=1)
    assert session.pause()
    assert not session.check_silence(now=100)
    assert session.add_result('ignored', now=100) is None

    assert session.resume(now=100)
    session.add_result('so the point is', now=101)
    assert len(session.transcripts) == 1
    assert session.transcripts[0].text == 'so the point is'
    assert not session.transcripts[0].is_final


def test_recognition_end_restarts_until_silent():
    session = DebateSession('ctx', silence_timeout=5)
    assert session.recognition_ended(now=0) == 'idle'
    session.start_recording(now=0)
    assert session.recognition_ended(now=2) == 'restart'
    assert session.state == 'recording'
    assert session.recognition_ended(now=9) == 'stopped'
    assert session.state == 'idle'


def test_switch_speaker_stops_and_toggles():
    session = DebateSession('ctx')
    session.start_recording(now=0)
    session.add_result('party a talking', now=1)

    assert session.switch_speaker() == 'partyB'
    assert session.state == 'idle'
    session.start_recording(now=2)
    session.add_result('party b now', now=3)

    assert [e.speaker for e in session.transcripts] == ['partyA', 'partyB']
    assert session.switch_speaker() == 'partyA'


def test_finish_requires_transcripts():
    session = DebateSession('ctx')
    with pytest.raises(DebateError):
        session.finish(FakeService())


def test_finish_runs_analysis_and_locks_session():
    session = DebateSession('cats vs dogs')
    session.start_recording(now=0)
    session.add_result('cats', now=1)
    service = FakeService()

    analysis = session.finish(service, provider='cohere')

    assert analysis.summary == 's'
    assert session.state == 'finished'
    assert service.analyzed[1:] == ('cats vs dogs', 'cohere')
    assert service.analyzed[0][0].is_final
    with pytest.raises(DebateError):
        session.start_recording()

    session.reset()
    assert session.state == 'idle'
    assert session.transcripts == []
    assert session.current_speaker == 'partyA'


def test_respond_appends_ai_entry():
    session = DebateSession('ctx')
    entry = session.respond(FakeService('Tell me more.'))
    assert entry.speaker == 'ai'
    assert entry.is_final
    assert session.transcripts == [entry]


def test_snapshot_uses_wire_names():
    session = DebateSession('ctx')
    session.start_recording(now=0)
    session.add_result('hi', is_final=True, now=1)
    snap = session.snapshot()
    assert snap['state'] == 'recording'
    assert snap['transcripts'][0]['isFinal'] is True


def test_manager_lookup():
    manager = DebateManager()
    session = manager.create_session('ctx')
    assert manager.get_session(session.id) is session
    assert manager.get_session('nope') is None


def test_out_of_range_update_leaves_open_entry_untouched():
    session = DebateSession('ctx')
    session.start_recording(now=0)
    session.add_result('a', now=1)

    with pytest.raises(ValidationError):
        session.add_result('ab', confidence=7.5, now=2)
    entry = session.transcripts[-1]
    assert (entry.text, entry.confidence, entry.is_final) == ('a', 1.0, False)

    with pytest.raises(ValidationError):
        entry.confidence = 5
