"""Thin wrappers over the vendor SDKs used by the judges.

Each helper takes the API key explicitly (keys can be supplied at runtime
through /api/config) and returns plain text. Failures are raised as LLMError.
"""
import logging
import traceback

try:
    from openai import OpenAI  # type: ignore
except ImportError:
    OpenAI = None

try:
    from anthropic import Anthropic  # type: ignore
except ImportError:
    Anthropic = None

try:
    from google import genai  # type: ignore
except ImportError:
    genai = None

try:
    import cohere  # type: ignore
except ImportError:
    cohere = None

logger = logging.getLogger('arbitration.llm')


class LLMError(RuntimeError):
    pass


def _require(api_key: str | None, sdk, vendor: str):
    if not api_key:
        raise LLMError(f'{vendor} API key not provided')
    if sdk is None:
        raise LLMError(f'{vendor} package not installed')


def _get_text_from_resp(resp) -> str:
    # Try common response shapes and fall back to str()
    text = getattr(resp, 'output_text', None)
    if text:
        return text

    out = getattr(resp, 'output', None)
    if out:
        try:
            return out[0].content[0].text
        except (AttributeError, IndexError, TypeError):
            return str(out)

    return str(resp)


def call_responses(api_key: str | None, model: str, input_text: str, **kwargs) -> str:
    """Call the OpenAI Responses API in a resilient way.

    Tries a couple of call shapes if the installed SDK rejects some kwargs
    (for example older/newer SDKs may not accept `max_tokens`).
    """
    _require(api_key, OpenAI, 'OpenAI')
    client = OpenAI(api_key=api_key)

    attempts = [dict(kwargs)]
    if 'max_tokens' in kwargs:
        alt = dict(kwargs)
        alt.pop('max_tokens')
        attempts.append(alt)
    if kwargs:
        attempts.append({})

    last_exc = None
    for i, attempt in enumerate(attempts):
        try:
            resp = client.responses.create(model=model, input=input_text, **attempt)
            return _get_text_from_resp(resp)
        except TypeError as e:
            # often caused by unexpected keyword arguments; try fallback shapes
            last_exc = e
        except Exception as e:
            if i == 0:
                # network / API error on the primary shape: not a kwargs problem
                raise LLMError(f'OpenAI Responses call failed: {e}') from e
            last_exc = e

    tb = traceback.format_exception(type(last_exc), last_exc, last_exc.__traceback__)
    raise LLMError('OpenAI Responses call failed. Last error:\n' + ''.join(tb))


def stream_responses(api_key: str | None, model: str, input_text: str, **kwargs):
    """Yield text deltas from the OpenAI Responses streaming API.

    Falls back to a single non-streaming call when the installed SDK cannot
    open a stream.
    """
    _require(api_key, OpenAI, 'OpenAI')
    client = OpenAI(api_key=api_key)

    try:
        stream_ctx = client.responses.stream(model=model, input=input_text, **kwargs)
    except Exception:
        logger.debug('streaming unavailable for %s, falling back', model)
        stream_ctx = None

    if stream_ctx is None:
        yield call_responses(api_key, model, input_text, **kwargs)
        return

    with stream_ctx as stream:
        for event in stream:
            if getattr(event, 'type', None) == 'response.output_text.delta':
                delta = getattr(event, 'delta', '')
                yield str(delta or '')
                continue
            # Some SDKs yield partial Response objects with output_text attribute
            partial = getattr(event, 'output_text', None)
            if partial:
                yield str(partial)


def transcribe(api_key: str | None, filename: str, data: bytes, model: str = 'whisper-1') -> str:
    _require(api_key, OpenAI, 'OpenAI')
    client = OpenAI(api_key=api_key)
    try:
        result = client.audio.transcriptions.create(model=model, file=(filename, data))
    except Exception as e:
        raise LLMError(f'OpenAI transcription failed: {e}') from e
    return getattr(result, 'text', None) or ''


def call_anthropic(api_key: str | None, model: str, prompt: str, max_tokens: int = 2000) -> str:
    _require(api_key, Anthropic, 'Anthropic')
    client = Anthropic(api_key=api_key)
    try:
        resp = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[{'role': 'user', 'content': prompt}],
        )
    except Exception as e:
        raise LLMError(f'Anthropic call failed: {e}') from e

    texts = [block.text for block in resp.content if getattr(block, 'type', None) == 'text']
    if not texts:
        raise LLMError('Anthropic returned no text content')
    return '\n'.join(texts)


def call_gemini(api_key: str | None, model: str, prompt: str) -> str:
    _require(api_key, genai, 'Gemini')
    client = genai.Client(api_key=api_key)
    try:
        result = client.models.generate_content(model=model, contents=prompt)
    except Exception as e:
        raise LLMError(f'Gemini call failed: {e}') from e
    text = getattr(result, 'text', None)
    if not text:
        raise LLMError('Gemini returned an empty response')
    return text


def call_cohere(api_key: str | None, model: str, prompt: str) -> str:
    _require(api_key, cohere, 'Cohere')
    client = cohere.ClientV2(api_key=api_key)
    try:
        response = client.chat(model=model, messages=[{'role': 'user', 'content': prompt}])
    except Exception as e:
        raise LLMError(f'Cohere call failed: {e}') from e

    message = getattr(response, 'message', None)
    content = getattr(message, 'content', None) if message else None
    if not content:
        raise LLMError('No response received from Cohere')
    return content[0].text or ''
