"""
Provider-agnostic LLM client for StudyRAG.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface. Provider SDKs are synchronous; `agenerate` runs them in a worker
thread under a timeout so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Dict, List, Optional

from .config import LLMConfig

logger = logging.getLogger("studyrag.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")

Turns = List[Dict[str, str]]


class LLMClient:
    """
    Unified text generation client across LLM providers.

    A client whose provider has no key, or whose SDK failed to load, is
    constructed anyway and reports `is_available = False`. Callers check
    that flag and fall back to templated answers.
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        self._google_models = {}  # GenerativeModel per system prompt hash

        if self.provider == "auto":
            raise ValueError(
                '"auto" provider must be resolved before creating LLMClient. '
                'Use LLMClient.from_config() to pick the first configured provider.'
            )

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        api_key = {
            "anthropic": anthropic_api_key,
            "openai": openai_api_key,
            "google": google_api_key,
        }[self.provider]
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        connect = getattr(self, f"_connect_{self.provider}")
        try:
            self._client = connect(api_key)
        except ImportError as e:
            logger.warning("SDK for %s is not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        """Build a client from config, resolving "auto" to the first provider with a key."""
        keys = {
            "anthropic": config.anthropic_api_key,
            "openai": config.openai_api_key,
            "google": config.google_api_key,
        }
        provider = (config.provider or "anthropic").lower()
        if provider == "auto":
            provider = next((name for name in SUPPORTED_PROVIDERS if keys[name]), "anthropic")

        models = {
            "anthropic": config.anthropic_model,
            "openai": config.openai_model,
            "google": config.google_model,
        }
        return cls(
            provider=provider,
            model=models.get(provider, ""),
            anthropic_api_key=keys["anthropic"] or None,
            openai_api_key=keys["openai"] or None,
            google_api_key=keys["google"] or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # SDK setup
    # ------------------------------------------------------------------

    @staticmethod
    def _connect_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _connect_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _connect_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # module; models are built per system prompt

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        history: Optional[Turns] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: The user turn
            system: Optional system instruction
            history: Prior turns as [{"role": "user"|"assistant", "content": ...}]
            max_tokens: Output token cap
            timeout: Provider request timeout in seconds

        Raises:
            RuntimeError: no usable provider client
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        turns = list(history or []) + [{"role": "user", "content": prompt}]
        generate = getattr(self, f"_generate_{self.provider}", None)
        if generate is None:
            raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
        return generate(turns, system, max_tokens, timeout).strip()

    def _generate_anthropic(self, turns: Turns, system, max_tokens: int, timeout: float) -> str:
        extra = {"system": system} if system else {}
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=turns,
            timeout=timeout,
            **extra,
        )
        return response.content[0].text

    def _generate_openai(self, turns: Turns, system, max_tokens: int, timeout: float) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages + turns,
            timeout=timeout,
        )
        return response.choices[0].message.content or ""

    def _generate_google(self, turns: Turns, system, max_tokens: int, timeout: float) -> str:
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        model = self._google_models.get(cache_key)
        if model is None:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            model = self._google_models[cache_key] = self._client.GenerativeModel(**options)

        # Gemini calls the assistant side "model"
        contents = [
            {"role": "model" if t["role"] == "assistant" else "user", "parts": [t["content"]]}
            for t in turns
        ]
        response = model.generate_content(
            contents,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text

    async def agenerate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        history: Optional[Turns] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """Async `generate`; raises asyncio.TimeoutError past `timeout`."""
        return await asyncio.wait_for(
            asyncio.to_thread(
                self.generate,
                prompt,
                system=system,
                history=history,
                max_tokens=max_tokens,
                timeout=timeout,
            ),
            timeout=timeout,
        )
