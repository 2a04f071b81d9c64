# ============================================================================
# tests/unit/test_ollama_client.py
# ============================================================================
"""
Tests for the Ollama vision client (HTTP layer mocked)
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from order_proof.utils.exceptions import ModelError
from order_proof.vlm.ollama_client import OllamaVisionClient


class FakeResponse:
    def __init__(self, status=200, data=None, text=""):
        self.status = status
        self._data = data or {}
        self._text = text

    async def json(self):
        return self._data

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _session(response=None, error=None):
    session = MagicMock()
    session.closed = False
    if error is not None:
        session.post.side_effect = error
        session.get.side_effect = error
    else:
        session.post.return_value = response
        session.get.return_value = response
    return session


@pytest.fixture
def client():
    return OllamaVisionClient({'host': "http://ollama.test/", 'max_tokens': 256})


class TestClientStructure:

    def test_config(self, client):
        assert client.host == "http://ollama.test"
        assert client.backend == "ollama"
        assert client.configured
        assert client._headers() == {}

    def test_bearer_header(self):
        client = OllamaVisionClient({'host': "http://proxy.test", 'api_key': "token"})
        assert client._headers() == {"Authorization": "Bearer token"}


class TestGenerate:

    @pytest.mark.asyncio
    async def test_payload_and_response(self, client):
        session = _session(FakeResponse(data={'response': '  {"a": 1}  ', 'eval_count': 5}))
        schema = {"type": "object"}

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            result = await client.generate("prompt", model="qwen2.5vl:7b", image_b64="b64", response_schema=schema)

        assert result['text'] == '{"a": 1}'
        assert result['model'] == "qwen2.5vl:7b"
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs['json']
        assert url == "http://ollama.test/api/generate"
        assert payload['images'] == ["b64"]
        assert payload['format'] == schema
        assert payload['options'] == {'num_predict': 256, 'temperature': 0.0}
        assert payload['stream'] is False
        assert client.get_statistics()['inference_count'] == 1

    @pytest.mark.asyncio
    async def test_text_only_call(self, client):
        session = _session(FakeResponse(data={'response': 'ok'}))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            await client.generate("prompt", model="m", max_tokens=64, temperature=0.2)

        payload = session.post.call_args.kwargs['json']
        assert 'images' not in payload and 'format' not in payload
        assert payload['options'] == {'num_predict': 64, 'temperature': 0.2}

    @pytest.mark.asyncio
    async def test_http_error(self, client):
        session = _session(FakeResponse(status=404, text="model 'm' not found"))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            with pytest.raises(ModelError, match="404"):
                await client.generate("prompt", model="m")

        assert client.get_statistics()['error_count'] == 1

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self, client):
        session = _session(error=aiohttp.ClientPayloadError("broken"))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            with pytest.raises(ModelError, match="request failed"):
                await client.generate("prompt", model="m")


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_model_pulled(self, client):
        data = {'models': [{'name': "qwen2.5vl:7b"}, {'name': "llava:13b"}]}
        session = _session(FakeResponse(data=data))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            status = await client.health_check("qwen2.5vl:7b")

        assert status['healthy'] is True

    @pytest.mark.asyncio
    async def test_model_missing(self, client):
        session = _session(FakeResponse(data={'models': [{'name': "llava:13b"}]}))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            status = await client.health_check("qwen2.5vl:7b")

        assert status['healthy'] is False
        assert "ollama pull qwen2.5vl:7b" in status['details']

    @pytest.mark.asyncio
    async def test_server_error(self, client):
        session = _session(FakeResponse(status=500))

        with patch.object(client, '_get_session', AsyncMock(return_value=session)):
            status = await client.health_check("llava:13b")

        assert status['healthy'] is False
        assert "500" in status['details']

    @pytest.mark.asyncio
    async def test_close_without_session(self, client):
        await client.close()
        assert client._session is None
