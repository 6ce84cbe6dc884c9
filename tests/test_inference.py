# tests/test_inference.py
import json

import pytest
import respx
from httpx import Response

from contactscout.extraction.inference import (InferenceClient, InferenceError, capitalize_name,
                                               capitalize_role, parse_people_response)

API_URL = "https://openrouter.ai/api/v1/chat/completions"


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# --------------------------------------------------------------------- capitalization

@pytest.mark.parametrize("raw, expected", [
    ("john", "John"), ("MARY-JANE", "Mary-Jane"), ("o'neil", "O'Neil"), ("van der berg", "Van Der Berg"),
])
def test_capitalize_name(raw, expected):
    assert capitalize_name(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("ceo", "CEO"),
    ("vp of sales", "VP of Sales"),
    ("head of research and development", "Head of Research and Development"),
    ("CHIEF TECHNOLOGY OFFICER", "Chief Technology Officer"),
    ("director for the board", "Director for the Board"),
])
def test_capitalize_role(raw, expected):
    assert capitalize_role(raw) == expected


# --------------------------------------------------------------------- parsing

def test_parse_plain_json_array():
    people = parse_people_response('[{"firstName":"jane","lastName":"doe","role":"cto"}]')
    assert [(p.first_name, p.last_name, p.role) for p in people] == [("Jane", "Doe", "CTO")]


def test_parse_array_wrapped_in_prose():
    text = 'Sure! Here you go:\n[{"firstName": "Ole", "lastName": "Hansen", "role": "Founder"}]\nHope it helps.'
    assert [p.full_name for p in parse_people_response(text)] == ["Ole Hansen"]


def test_parse_malformed_json_falls_back_to_field_regex():
    text = '[{"firstName":"anna","lastName":"berg","role":"vp of sales"},{"firstName":"Bo",}]'
    people = parse_people_response(text)
    assert [(p.first_name, p.last_name, p.role) for p in people] == [
        ("Anna", "Berg", "VP of Sales"),
        ("Bo", "", ""),
    ]


@pytest.mark.parametrize("text", ["", "no people here", "[]", "[ ]", '[{"lastName":"Solo"}]'])
def test_parse_empty_results(text):
    assert parse_people_response(text) == []


# --------------------------------------------------------------------- client

@pytest.mark.asyncio
@respx.mock
async def test_client_posts_bounded_prompt_and_parses_answer():
    route = respx.post(API_URL).mock(return_value=Response(
        200, json=_completion('[{"firstName":"jane","lastName":"doe","role":"chief executive officer"}]')
    ))
    client = InferenceClient("sk-test-key", model="some/model")
    try:
        people = await client.extract_people("x" * 5000, "https://acme.test/team")
    finally:
        await client.close()

    assert [(p.first_name, p.last_name, p.role) for p in people] == [("Jane", "Doe", "Chief Executive Officer")]

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer sk-test-key"
    body = json.loads(request.content)
    assert body["model"] == "some/model"
    assert body["max_tokens"] == 2000
    assert body["temperature"] == 0.1
    prompt = body["messages"][0]["content"]
    assert body["messages"][0]["role"] == "user"
    assert "https://acme.test/team" in prompt
    assert "x" * 3000 in prompt and "x" * 3001 not in prompt


@pytest.mark.asyncio
@respx.mock
async def test_client_raises_inference_error_on_http_failure():
    respx.post(API_URL).mock(return_value=Response(500, json={"error": "boom"}))
    client = InferenceClient("k")
    with pytest.raises(InferenceError):
        await client.extract_people("text", "https://acme.test")
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_client_raises_inference_error_on_bad_shape():
    respx.post(API_URL).mock(return_value=Response(200, json={"unexpected": True}))
    client = InferenceClient("k")
    with pytest.raises(InferenceError):
        await client.extract_people("text", "https://acme.test")
    await client.close()
