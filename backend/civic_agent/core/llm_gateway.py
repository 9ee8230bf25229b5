import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import Settings, load_settings

logger = logging.getLogger("civic_agent.llm")


@dataclass(frozen=True)
class GatewayResponse:
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    model: Optional[str] = None


class ModelGateway:
    """
    Sends a prompt to an OpenAI-compatible chat endpoint (LLMOD_BASE_URL,
    e.g. a local Ollama /v1) and returns free text or an error.

    Owns bounded retries with exponential backoff: with the defaults, 3
    attempts separated by 1s and 2s. generate() never raises; a timeout,
    exhausted retries and a missing configuration all come back as
    GatewayResponse(success=False).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        max_delay: float = 30.0,
    ):
        self.settings = settings or load_settings()
        self._client = client
        self._sleep = sleep
        self.max_delay = max_delay

    def is_configured(self) -> bool:
        if self._client is not None:
            return True
        return bool(self.settings.api_key and self.settings.base_url and self.settings.model)

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.3,
        top_p: float = 0.9,
    ) -> GatewayResponse:
        model = model or self.settings.model
        if not self.is_configured():
            return GatewayResponse(
                success=False,
                error="LLM not configured (missing LLMOD_API_KEY / LLMOD_BASE_URL / CHAT_MODEL)",
                model=model,
            )

        attempts = self.settings.max_retries
        delay = self.settings.backoff_base_seconds
        last_error = "Failed to generate response"

        for attempt in range(1, attempts + 1):
            try:
                resp = self._get_client().chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    top_p=top_p,
                )
                text = resp.choices[0].message.content
                if not text or not text.strip():
                    raise ValueError("Empty response from language model")
                return GatewayResponse(success=True, text=text, attempts=attempt, model=model)
            except Exception as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning("model call failed (attempt %d/%d): %s", attempt, attempts, last_error)
                if attempt < attempts:
                    self._sleep(min(delay, self.max_delay))
                    delay *= 2

        return GatewayResponse(success=False, error=last_error, attempts=attempts, model=model)

    def health_check(self) -> Dict[str, Any]:
        if not self.is_configured():
            return {"status": "unconfigured", "connected": False, "models": []}
        try:
            models: List[str] = [m.id for m in self._get_client().models.list()]
        except Exception as e:
            return {"status": "unhealthy", "connected": False, "error": str(e), "models": []}
        return {
            "status": "healthy",
            "connected": True,
            "models": models,
            "primary_model": self.settings.model,
            "has_primary_model": self.settings.model in models,
        }
