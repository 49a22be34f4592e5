"""Unit tests for the AI project generator.

Reply parsing is tested directly; the ProjectGenerator is tested against
an httpx.MockTransport so request shape and error mapping are checked
without network access.
"""

import asyncio
import json

import httpx
import pytest

from src.pollinate.generator.client import GENERATION_SYSTEM_PROMPT, ProjectGenerator
from src.pollinate.generator.models import (
    FALLBACK_PATH,
    ExtractionError,
    GeneratedFile,
    GenerationOptions,
    ProviderError,
    RawFallback,
    StructuredFiles,
)
from src.pollinate.generator.parsing import (
    build_request_body,
    extract_reply_text,
    normalize_files,
    normalize_path,
    parse_reply,
)


LLM_URL = "https://llm.test/api/generate/openai"


def run_async(coro):
    return asyncio.run(coro)


def _chat_response(content=None, content_blocks=None):
    message = {"role": "assistant"}
    if content is not None:
        message["content"] = content
    if content_blocks is not None:
        message["content_blocks"] = content_blocks
    return {"choices": [{"index": 0, "message": message}]}


def _generator(handler, **kwargs) -> ProjectGenerator:
    return ProjectGenerator(
        llm_url=LLM_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Reply text extraction
# ---------------------------------------------------------------------------


class TestExtractReplyText:
    def test_message_content(self):
        assert extract_reply_text(_chat_response(content="hello")) == "hello"

    def test_content_blocks_joined_with_blank_line(self):
        data = _chat_response(
            content_blocks=[{"type": "text", "text": "one"}, {"text": "two"}]
        )
        assert extract_reply_text(data) == "one\n\ntwo"

    def test_blank_content_falls_back_to_blocks(self):
        data = _chat_response(content="   ", content_blocks=[{"text": "from blocks"}])
        assert extract_reply_text(data) == "from blocks"

    def test_content_preferred_over_blocks(self):
        data = _chat_response(content="main", content_blocks=[{"text": "ignored"}])
        assert extract_reply_text(data) == "main"

    @pytest.mark.parametrize("data", [{}, {"choices": []}, {"choices": None}, []])
    def test_no_choices_is_provider_error(self, data):
        with pytest.raises(ProviderError, match="no choices"):
            extract_reply_text(data)

    def test_no_text_is_extraction_error(self):
        with pytest.raises(ExtractionError):
            extract_reply_text(_chat_response())

    def test_empty_blocks_is_extraction_error(self):
        with pytest.raises(ExtractionError):
            extract_reply_text(_chat_response(content="", content_blocks=[]))

    @pytest.mark.parametrize(
        "blocks",
        [[{"text": ""}], [{"text": "  "}, {"text": ""}], [{"type": "image"}]],
    )
    def test_blank_blocks_is_extraction_error(self, blocks):
        with pytest.raises(ExtractionError):
            extract_reply_text(_chat_response(content="", content_blocks=blocks))


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


class TestParseReply:
    def test_json_array_of_files(self):
        reply = parse_reply('[{"path":"a.txt","content":"x"}]')

        assert isinstance(reply, StructuredFiles)
        assert reply.files == [GeneratedFile(path="a.txt", content="x")]

    def test_order_is_preserved(self):
        text = json.dumps(
            [
                {"path": "b.py", "content": "b"},
                {"path": "a.py", "content": "a"},
                {"path": "c.py", "content": "c"},
            ]
        )
        reply = parse_reply(text)
        assert [f.path for f in reply.files] == ["b.py", "a.py", "c.py"]

    def test_not_json_falls_back_to_raw_text(self):
        reply = parse_reply("not json")

        assert isinstance(reply, RawFallback)
        assert reply.text == "not json"
        assert reply.to_files() == [
            GeneratedFile(path=FALLBACK_PATH, content="not json")
        ]

    def test_json_object_falls_back(self):
        text = '{"path": "a.txt", "content": "x"}'
        reply = parse_reply(text)
        assert isinstance(reply, RawFallback)
        assert reply.text == text

    def test_array_without_valid_entries_falls_back(self):
        text = '[{"name": "a.txt"}, 3, "b"]'
        reply = parse_reply(text)
        assert isinstance(reply, RawFallback)
        assert reply.text == text

    def test_empty_array_falls_back(self):
        assert isinstance(parse_reply("[]"), RawFallback)

    def test_invalid_entries_are_dropped(self):
        text = json.dumps(
            [
                {"path": "keep.txt", "content": "k"},
                {"path": "", "content": "empty path"},
                {"path": "empty.txt", "content": ""},
                {"path": 5, "content": "bad path"},
                "string entry",
            ]
        )
        reply = parse_reply(text)
        assert isinstance(reply, StructuredFiles)
        assert [f.path for f in reply.files] == ["keep.txt"]

    def test_code_fence_is_tolerated(self):
        text = '```json\n[{"path": "a.txt", "content": "x"}]\n```'
        reply = parse_reply(text)
        assert isinstance(reply, StructuredFiles)
        assert reply.files[0].path == "a.txt"

    def test_bare_code_fence_is_tolerated(self):
        reply = parse_reply('```\n[{"path": "a.txt", "content": "x"}]\n```')
        assert isinstance(reply, StructuredFiles)

    def test_fallback_keeps_unstripped_text(self):
        text = "```\nnot json\n```"
        reply = parse_reply(text)
        assert isinstance(reply, RawFallback)
        assert reply.text == text

    def test_deeply_nested_reply_falls_back(self):
        text = "[" * 100000
        reply = parse_reply(text)
        assert isinstance(reply, RawFallback)
        assert reply.text == text


class TestNormalizePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("a.txt", "a.txt"),
            ("/a.txt", "a.txt"),
            ("./src/app.py", "src/app.py"),
            ("//./x/y", "x/y"),
            ("  docs/README.md ", "docs/README.md"),
            ("/", ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_root_only_path_is_dropped(self):
        assert normalize_files([{"path": "/", "content": "x"}]) == []


class TestBuildRequestBody:
    def test_fields(self):
        messages = [{"role": "user", "content": "hi"}]
        body = build_request_body(messages, "openai-large", 0.7, 2000)

        assert body == {
            "messages": messages,
            "model": "openai-large",
            "temperature": 0.7,
            "max_tokens": 2000,
            "n": 1,
            "response_format": {"type": "text"},
            "stream": False,
        }


# ---------------------------------------------------------------------------
# ProjectGenerator
# ---------------------------------------------------------------------------


class TestProjectGenerator:
    def test_generate_structured_files(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=_chat_response(
                    content=json.dumps(
                        [
                            {"path": "app.py", "content": "print('hi')"},
                            {"path": "README.md", "content": "# App"},
                        ]
                    )
                ),
            )

        generator = _generator(handler, api_key="k-123")
        files = run_async(generator.generate("a hello world app"))

        assert [f.path for f in files] == ["app.py", "README.md"]
        assert captured["url"] == LLM_URL
        assert captured["headers"]["x-api-key"] == "k-123"
        assert captured["body"]["messages"] == [
            {"role": "system", "content": GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": "a hello world app"},
        ]
        assert captured["body"]["stream"] is False

    def test_api_key_header_omitted_when_empty(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["headers"] = request.headers
            return httpx.Response(200, json=_chat_response(content="text"))

        run_async(_generator(handler).generate("x"))
        assert "x-api-key" not in captured["headers"]

    def test_options_are_passed_through(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_response(content="text"))

        options = GenerationOptions(model="mistral", temperature=0.2, max_tokens=50)
        run_async(_generator(handler).generate("x", options))

        assert captured["body"]["model"] == "mistral"
        assert captured["body"]["temperature"] == 0.2
        assert captured["body"]["max_tokens"] == 50

    def test_defaults_used_without_options(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_response(content="text"))

        defaults = GenerationOptions(model="custom-default")
        run_async(_generator(handler, defaults=defaults).generate("x"))
        assert captured["body"]["model"] == "custom-default"

    def test_unparseable_reply_yields_fallback_file(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_chat_response(content="not json"))

        files = run_async(_generator(handler).generate("x"))
        assert files == [GeneratedFile(path=FALLBACK_PATH, content="not json")]

    def test_content_blocks_reply(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=_chat_response(
                    content="",
                    content_blocks=[
                        {"text": '[{"path": "a.txt",'},
                        {"text": '"content": "x"}]'},
                    ],
                ),
            )

        files = run_async(_generator(handler).generate("x"))
        assert files == [GeneratedFile(path="a.txt", content="x")]

    def test_error_status_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream busy")

        with pytest.raises(ProviderError) as exc_info:
            run_async(_generator(handler).generate("x"))

        assert exc_info.value.status_code == 503
        assert "503" in str(exc_info.value)
        assert "upstream busy" in str(exc_info.value)

    def test_no_choices_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(ProviderError):
            run_async(_generator(handler).generate("x"))

    def test_no_text_raises_extraction_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_chat_response())

        with pytest.raises(ExtractionError):
            run_async(_generator(handler).generate("x"))

    def test_blank_blocks_raise_extraction_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json=_chat_response(content_blocks=[{"text": ""}])
            )

        with pytest.raises(ExtractionError):
            run_async(_generator(handler).generate("x"))

    def test_invalid_json_response_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(ProviderError, match="invalid JSON"):
            run_async(_generator(handler).generate("x"))

    def test_transport_error_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            run_async(_generator(handler).generate("x"))

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    def test_single_request_per_call(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="boom")

        with pytest.raises(ProviderError):
            run_async(_generator(handler).generate("x"))
        assert len(calls) == 1
