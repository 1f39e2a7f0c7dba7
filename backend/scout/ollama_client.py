import requests

from .config import Settings

TIMEOUT = 120


class EndpointMissing(Exception):
    pass


def _post(settings: Settings, path: str, payload: dict) -> dict:
    body = {
        "model": settings.ollama_model,
        "stream": False,
        "format": "json",
        "options": {"num_predict": settings.ollama_tokens,
                    "temperature": settings.ollama_temp},
    }
    body.update(payload)
    r = requests.post(f"{settings.ollama_url.rstrip('/')}{path}", json=body, timeout=TIMEOUT)
    if r.status_code == 404:
        raise EndpointMissing(path)
    r.raise_for_status()
    data = r.json()
    return data if isinstance(data, dict) else {}


def _text_of(data: dict) -> str:
    # /api/chat answers {message: {content}}, /api/generate answers {response}
    content = (data.get("message") or {}).get("content")
    if content:
        return content.strip()
    return str(data.get("response") or "").strip()


def ollama_generate(prompt: str, settings: Settings) -> str:
    """Prompt in, text out. Raises RuntimeError when the server is unusable."""
    if not settings.ollama_url:
        raise RuntimeError("SCOUT_OLLAMA_URL is not configured")
    try:
        return _text_of(_post(settings, "/api/generate", {"prompt": prompt}))
    except (EndpointMissing, requests.RequestException, ValueError):
        pass
    # older servers, or generate failing: retry once through chat
    try:
        data = _post(settings, "/api/chat",
                     {"messages": [{"role": "user", "content": prompt}]})
    except (EndpointMissing, requests.RequestException, ValueError) as e:
        raise RuntimeError(f"Ollama error: {e}") from e
    return _text_of(data)
