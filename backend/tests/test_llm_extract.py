import asyncio

import pytest
import requests

from scout import ollama_client
from scout.config import Settings
from scout.normalize import normalize
from scout.llm_extract import HTML_BUDGET, llm_extract_product, parse_llm_product, strip_fences

URL = "https://shop.test/kettle"


def test_strip_fences():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('{"a": 1}') == '{"a": 1}'


def test_parse_llm_product():
    text = '```json\n{"title": "Kettle", "price": "₹1,299", "rating": 4.2, "reviewCount": "35"}\n```'
    p = parse_llm_product(text, URL)
    assert p.origin == "llm"
    assert p.title == "Kettle"
    assert p.price == 1299.0
    assert p.rating == 4.2
    assert p.review_count == 35
    assert p.currency == "INR"
    assert p.availability == "Unknown"
    assert p.url == URL


def test_rupee_prefix_does_not_shift_the_decimal():
    p = normalize(parse_llm_product('{"title": "Kettle", "price": "Rs. 1,299"}', URL), URL)
    assert p.price == 1299.0


def test_parse_llm_product_rejects_non_json():
    assert parse_llm_product("Sorry, I cannot help with that.", URL) is None
    assert parse_llm_product("[1, 2, 3]", URL) is None


def test_generator_sees_truncated_html():
    prompts = []

    def generate(prompt):
        prompts.append(prompt)
        return '{"title": "Kettle", "price": 10}'

    p = asyncio.run(llm_extract_product("x" * (HTML_BUDGET * 2), URL, generate))
    assert p.title == "Kettle"
    assert "x" * HTML_BUDGET in prompts[0]
    assert "x" * (HTML_BUDGET + 1) not in prompts[0]
    assert URL in prompts[0]


def test_generator_failure_gives_none():
    def generate(prompt):
        raise RuntimeError("model offline")

    assert asyncio.run(llm_extract_product("<html></html>", URL, generate)) is None


class FakeResponse:
    def __init__(self, status_code, data=None):
        self.status_code = status_code
        self._data = data or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        return self._data


def test_ollama_falls_back_to_chat(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append(url)
        if url.endswith("/api/generate"):
            return FakeResponse(404)
        return FakeResponse(200, {"message": {"content": ' {"title": "Kettle"} '}})

    monkeypatch.setattr(ollama_client.requests, "post", fake_post)
    settings = Settings(SCOUT_OLLAMA_URL="http://ollama.test:11434")
    assert ollama_client.ollama_generate("prompt", settings) == '{"title": "Kettle"}'
    assert calls == ["http://ollama.test:11434/api/generate", "http://ollama.test:11434/api/chat"]


def test_ollama_generate_endpoint(monkeypatch):
    monkeypatch.setattr(ollama_client.requests, "post",
                        lambda url, json=None, timeout=None: FakeResponse(200, {"response": "ok\n"}))
    settings = Settings(SCOUT_OLLAMA_URL="http://ollama.test:11434")
    assert ollama_client.ollama_generate("prompt", settings) == "ok"


def test_ollama_requires_a_url():
    with pytest.raises(RuntimeError):
        ollama_client.ollama_generate("prompt", Settings())
