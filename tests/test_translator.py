"""Tests for ollama_gateway.translator."""

import pytest

from ollama_gateway.errors import InvalidRequest
from ollama_gateway.models import ChatRequest, GenerateRequest
from ollama_gateway.translator import (
    prompt_messages,
    require_model,
    translate_chat,
    translate_generate,
    translate_request,
)


class TestPromptShape:
    def test_prompt_only(self):
        assert prompt_messages("Why is the sky blue?") == [
            {"role": "user", "content": "Why is the sky blue?"},
        ]

    def test_system_first(self):
        assert prompt_messages("hi", system="Be brief.") == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]

    def test_empty_prompt_still_one_user_message(self):
        assert prompt_messages("") == [{"role": "user", "content": ""}]

    def test_translate_generate(self):
        alias, messages = translate_generate(GenerateRequest(model="gpt-4o", prompt="hi"))
        assert alias == "gpt-4o"
        assert messages == [{"role": "user", "content": "hi"}]


class TestChatShape:
    def test_messages_passed_through_unchanged(self):
        messages = [
            {"role": "system", "content": "s"},
            {"role": "user", "content": "u"},
            {"role": "narrator", "content": "roles are not checked", "images": []},
        ]
        alias, translated = translate_chat(ChatRequest(model="gpt-4o", messages=messages))
        assert alias == "gpt-4o"
        assert translated == messages

    def test_translate_request_dispatches_on_type(self):
        chat = ChatRequest(model="m", messages=[{"role": "user", "content": "x"}])
        generate = GenerateRequest(model="m", prompt="x")
        assert translate_request(chat) == ("m", [{"role": "user", "content": "x"}])
        assert translate_request(generate) == ("m", [{"role": "user", "content": "x"}])


class TestValidation:
    @pytest.mark.parametrize("model", [None, "", "   "])
    def test_missing_model_rejected(self, model):
        with pytest.raises(InvalidRequest, match="Model name is required"):
            require_model(model)

    def test_generate_without_model(self):
        with pytest.raises(InvalidRequest):
            translate_generate(GenerateRequest(prompt="hi"))

    def test_chat_without_model(self):
        with pytest.raises(InvalidRequest):
            translate_chat(ChatRequest(messages=[{"role": "user", "content": "hi"}]))

    def test_invalid_request_is_client_error(self):
        assert InvalidRequest.status_code == 400
