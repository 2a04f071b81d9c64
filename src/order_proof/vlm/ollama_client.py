# ============================================================================
# src/order_proof/vlm/ollama_client.py
# ============================================================================
"""
Ollama Vision Client

Talks to an Ollama server over its HTTP API. Structured output is requested
by passing the response JSON schema as ``format``; images travel base64
encoded in ``images``.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull a vision model: ollama pull qwen2.5vl:7b
    3. Start server: ollama serve (or it runs automatically)
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from ..utils.exceptions import ModelError
from .base import BaseVisionClient


class OllamaVisionClient(BaseVisionClient):
    """
    Config options:
        host: Ollama server URL (default: http://localhost:11434)
        api_key: optional bearer token (for a proxied endpoint)
        max_tokens: default max tokens (default: 512)
        temperature: default temperature (default: 0.0)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('host', 'http://localhost:11434').rstrip('/')
        self.api_key = self.config.get('api_key')
        self.default_max_tokens = self.config.get('max_tokens', 512)
        self.default_temperature = self.config.get('temperature', 0.0)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

        self.logger.info(f"Initialized Ollama vision client: {self.host}")

    @property
    def backend(self) -> str:
        return "ollama"

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                try:
                    await self._session.close()
                except Exception as e:
                    self.logger.debug(f"Closing stale session failed: {e}")

            timeout = aiohttp.ClientTimeout(total=None, sock_connect=10)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=self._headers())
            self._session_loop = current_loop

        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def health_check(self, model: str) -> Dict[str, Any]:
        """Check that the server runs and ``model`` has been pulled."""
        try:
            session = await self._get_session()
            async with session.get(f"{self.host}/api/tags") as response:
                if response.status != 200:
                    return {
                        "healthy": False,
                        "backend": self.backend,
                        "model": model,
                        "details": f"Ollama server returned status {response.status}",
                    }
                data = await response.json()
        except aiohttp.ClientConnectorError:
            return {
                "healthy": False,
                "backend": self.backend,
                "model": model,
                "details": f"Cannot connect to Ollama at {self.host}",
            }
        except Exception as e:
            return {
                "healthy": False,
                "backend": self.backend,
                "model": model,
                "details": f"Health check failed: {e}",
            }

        models = [m.get('name', '') for m in data.get('models', [])]
        available = any(name == model or name.startswith(f"{model}:") for name in models)
        return {
            "healthy": available,
            "backend": self.backend,
            "model": model,
            "details": "model available" if available else f"Model not found. Run: ollama pull {model}",
        }

    async def generate(
        self,
        prompt: str,
        model: str,
        image_b64: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Dict[str, Any]:
        start_time = datetime.now()

        payload: Dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_predict": max_tokens or self.default_max_tokens,
                "temperature": self.default_temperature if temperature is None else temperature,
            },
        }
        if response_schema:
            payload["format"] = response_schema
        if image_b64:
            payload["images"] = [image_b64]

        try:
            session = await self._get_session()
            async with session.post(f"{self.host}/api/generate", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ModelError(f"Ollama error ({response.status}): {error_text}")
                data = await response.json()
        except aiohttp.ClientConnectorError as e:
            self._error_count += 1
            raise ModelError(f"Cannot connect to Ollama at {self.host}") from e
        except aiohttp.ClientError as e:
            self._error_count += 1
            raise ModelError(f"Ollama request failed: {e}") from e
        except ModelError:
            self._error_count += 1
            raise

        inference_time = (datetime.now() - start_time).total_seconds()
        self._inference_count += 1
        self._total_inference_time += inference_time

        self.logger.debug(
            f"{model}: {data.get('eval_count', 0)} tokens in {inference_time:.2f}s"
        )

        return {
            "text": (data.get('response') or '').strip(),
            "model": model,
            "backend": self.backend,
            "inference_time": inference_time,
        }
