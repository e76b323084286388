import asyncio
import json
import logging
import queue
import threading
import time

from fastapi import FastAPI, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from . import llm_helper
from .ai_service import AIService, AIServiceError
from .case_manager import CaseError, CaseManager, CaseStateError
from .config import AIConfig
from .debate import DebateError, DebateManager, DebateSession
from .llm_helper import LLMError
from .models import (PARTY_LABELS, Case, CaseSubmission, DebateCreate, DebateFinish, KeyConfigUpdate)

# basic logger for the backend package
logger = logging.getLogger('arbitration')
if not logger.handlers:
    # default handler for local runs/tests
    h = logging.StreamHandler()
    fmt = logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s')
    h.setFormatter(fmt)
    logger.addHandler(h)
    logger.setLevel(logging.INFO)

# single global managers; state lives in memory only
manager = CaseManager(AIConfig.from_env())
debates = DebateManager()

app = FastAPI(title="AI Arbitration - Backend")


def current_config() -> AIConfig:
    return manager.config


def _case_or_404(case_id: str) -> Case:
    case = manager.get_case(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


def _debate_or_404(session_id: str) -> DebateSession:
    session = debates.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Debate session not found")
    return session


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/config")
async def get_config():
    return {"keys": current_config().status()}


@app.post("/api/config")
async def update_config(payload: KeyConfigUpdate):
    """Store API keys in process memory. Empty values leave existing keys alone."""
    manager.config = current_config().merged(payload.model_dump(exclude_none=True))
    logger.info("API key configuration updated: %s", manager.config.status())
    return {"keys": manager.config.status()}


@app.get("/api/cases")
async def list_cases():
    cases = manager.list_cases()
    return {"cases": cases, "count": len(cases)}


@app.post("/api/cases")
async def create_case(payload: CaseSubmission):
    try:
        return manager.create_case(payload.title, payload.dispute_amount,
                                   payload.party_a_text, payload.party_b_text)
    except CaseError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/cases/{case_id}")
async def get_case(case_id: str):
    return _case_or_404(case_id)


@app.post("/api/cases/{case_id}/statements/{party}")
async def upload_statement(
    case_id: str,
    party: str,
    file: UploadFile | None = File(None),
    text: str | None = Form(None),
):
    """Attach a party statement: an audio upload or typed text."""
    _case_or_404(case_id)
    audio = await file.read() if file is not None else None
    try:
        return manager.attach_statement(case_id, party, text=text, audio=audio,
                                        filename=file.filename if file is not None else None)
    except CaseStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CaseError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/cases/{case_id}/reset")
async def reset_case(case_id: str):
    _case_or_404(case_id)
    try:
        return manager.reset_case(case_id)
    except CaseStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/api/cases/{case_id}/process")
async def process_case(case_id: str):
    """Run the full arbitration pipeline and return the completed case."""
    _case_or_404(case_id)
    try:
        # the judges block on network calls; keep them off the event loop
        return await asyncio.to_thread(manager.run_pipeline, case_id)
    except CaseStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CaseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (AIServiceError, LLMError) as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/api/cases/{case_id}/process-stream")
async def process_case_stream(case_id: str):
    """Run the pipeline and stream stage progress as Server-Sent Events."""
    _case_or_404(case_id)
    events: queue.Queue = queue.Queue()

    def run():
        try:
            manager.run_pipeline(case_id, on_progress=events.put)
        except Exception as e:
            events.put({'stage': 'error', 'error': str(e)})
        finally:
            events.put(None)

    threading.Thread(target=run, daemon=True).start()

    def event_generator():
        while True:
            item = events.get()
            if item is None:
                break
            yield _sse(item)

    return StreamingResponse(event_generator(), media_type='text/event-stream')


@app.post("/api/debates")
async def create_debate(payload: DebateCreate):
    session = debates.create_session(payload.context)
    return {"session_id": session.id}


@app.get("/api/debates/{session_id}")
async def get_debate(session_id: str):
    return _debate_or_404(session_id).snapshot()


@app.post("/api/debates/{session_id}/reset")
async def reset_debate(session_id: str):
    session = _debate_or_404(session_id)
    session.reset()
    return session.snapshot()


@app.post("/api/debates/{session_id}/finish")
async def finish_debate(session_id: str, payload: DebateFinish | None = None):
    session = _debate_or_404(session_id)
    provider = payload.provider if payload else 'gemini'
    service = AIService(current_config())
    try:
        analysis = await asyncio.to_thread(session.finish, service, provider)
    except DebateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AIServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return analysis.model_dump(by_alias=True)


@app.post("/api/debates/{session_id}/respond")
async def respond_debate(session_id: str):
    session = _debate_or_404(session_id)
    service = AIService(current_config())
    try:
        entry = await asyncio.to_thread(session.respond, service)
    except DebateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AIServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"response": entry.text}


@app.get('/api/debates/{session_id}/respond-stream')
async def respond_debate_stream(session_id: str):
    """Stream the AI participant's reply as Server-Sent Events (SSE).

    Uses OpenAI streaming when an OpenAI key is configured; otherwise the
    Cohere reply is sent as one delta.
    """
    session = _debate_or_404(session_id)
    config = current_config()
    service = AIService(config)

    def event_generator():
        accum = ''
        try:
            session.ensure_open()
        except DebateError as e:
            yield _sse({'type': 'error', 'error': str(e)})
            return
        try:
            if config.openai_api_key:
                prompt = service.debate_response_prompt(session.transcripts, session.context)
                for chunk in llm_helper.stream_responses(config.openai_api_key, config.openai_model, prompt):
                    accum += chunk
                    yield _sse({'type': 'delta', 'delta': chunk})
            else:
                accum = service.generate_debate_response(session.transcripts, session.context)
                yield _sse({'type': 'delta', 'delta': accum})
            session.add_ai_reply(accum)
            yield _sse({'type': 'done', 'text': accum})
        except Exception as e:
            logger.exception("respond-stream failed for %s", session_id)
            yield _sse({'type': 'error', 'error': str(e)})

    return StreamingResponse(event_generator(), media_type='text/event-stream')


def _notice(title: str, description: str) -> dict:
    return {'type': 'notice', 'title': title, 'description': description}


async def _handle_debate_message(session: DebateSession, data: dict) -> list[dict]:
    """Apply one client message to the session and return the replies to send."""
    kind = data.get('type')
    label = PARTY_LABELS[session.current_speaker]

    if kind == 'start':
        if session.start_recording():
            return [{'type': 'state', **session.snapshot()},
                    _notice("Recording Started", f"Recording {label}'s statement.")]
        return [{'type': 'state', **session.snapshot()}]

    if kind == 'stop':
        if session.stop_recording():
            return [{'type': 'state', **session.snapshot()},
                    _notice("Recording Stopped", "Statement recorded successfully.")]
        return [{'type': 'state', **session.snapshot()}]

    if kind == 'pause':
        session.pause()
        return [{'type': 'state', **session.snapshot()}]

    if kind == 'resume':
        session.resume()
        return [{'type': 'state', **session.snapshot()}]

    if kind == 'switch':
        speaker = session.switch_speaker()
        return [{'type': 'state', **session.snapshot()},
                _notice("Speaker Changed", f"Now recording {PARTY_LABELS[speaker]}'s statement.")]

    if kind == 'result':
        entry = session.add_result(
            data.get('text', ''),
            is_final=bool(data.get('isFinal', False)),
            confidence=float(data.get('confidence', 1.0)),
            duration=float(data.get('duration', 0.0)),
        )
        if entry is None:
            return []
        return [{'type': 'transcript', 'index': len(session.transcripts) - 1,
                 'entry': entry.model_dump(by_alias=True)}]

    if kind == 'ended':
        action = session.recognition_ended()
        return [{'type': 'recognition', 'action': action}, {'type': 'state', **session.snapshot()}]

    if kind == 'finish':
        service = AIService(current_config())
        analysis = await asyncio.to_thread(session.finish, service, data.get('provider', 'gemini'))
        return [{'type': 'analysis', 'analysis': analysis.model_dump(by_alias=True)},
                {'type': 'state', **session.snapshot()}]

    if kind == 'respond':
        service = AIService(current_config())
        entry = await asyncio.to_thread(session.respond, service)
        return [{'type': 'ai_reply', 'entry': entry.model_dump(by_alias=True)}]

    return [{'type': 'error', 'error': f"unknown message type: {kind}"}]


@app.websocket('/ws/debate/{session_id}')
async def ws_debate(ws: WebSocket, session_id: str):
    await ws.accept()
    session = debates.get_session(session_id)
    if session is None:
        await ws.send_json({'type': 'error', 'error': 'debate session not found'})
        await ws.close(code=4404)
        return
    logger.debug("[ws] accepted connection for debate %s", session_id)
    await ws.send_json({'type': 'state', **session.snapshot()})

    try:
        while True:
            timeout = None
            if session.is_recording and session.last_activity is not None:
                # wait no longer than the remaining silence window
                timeout = max(0.0, session.silence_timeout - (time.monotonic() - session.last_activity))
            try:
                raw = await asyncio.wait_for(ws.receive_text(), timeout)
            except asyncio.TimeoutError:
                if session.check_silence():
                    await ws.send_json({'type': 'state', **session.snapshot()})
                    await ws.send_json(_notice(
                        "Recording Paused",
                        f"No speech detected for {session.silence_timeout:g} seconds."))
                continue

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_json({'type': 'error', 'error': 'messages must be valid JSON'})
                continue
            if not isinstance(data, dict):
                await ws.send_json({'type': 'error', 'error': 'messages must be JSON objects'})
                continue
            logger.debug("[ws] recv for %s: %s", session_id, data.get('type'))
            try:
                replies = await _handle_debate_message(session, data)
            except (TypeError, ValueError, AIServiceError) as e:
                # DebateError and pydantic ValidationError are ValueErrors
                replies = [{'type': 'error', 'error': str(e)}]
            for reply in replies:
                await ws.send_json(reply)
    except WebSocketDisconnect:
        logger.debug("[ws] debate %s disconnected", session_id)
    finally:
        session.stop_recording()
