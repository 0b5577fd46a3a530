"""
ai_gateway.py — SamvidhanAI
Single-shot calls to Groq: legal Q&A (text or image), and Whisper transcription.

One outbound request per call, no retries (max_retries=0) and a bounded
timeout. Any provider or network failure surfaces as UpstreamUnavailable.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from groq import Groq, GroqError

from settings import Settings

logger = logging.getLogger("samvidhan.ai_gateway")


class ConfigurationMissing(Exception):
    """No API key configured; the provider must not be called."""


class UpstreamUnavailable(Exception):
    """The provider call failed (network, rate limit, provider error)."""


SYSTEM_PROMPT = """You are SamvidhanAI, an unbiased Indian legal information assistant. Answer strictly on the basis of Indian law: the Constitution of India, the Bharatiya Nyaya Sanhita (BNS), Bharatiya Nagarik Suraksha Sanhita (BNSS), Bharatiya Sakshya Adhiniyam (BSA) and other central and state Acts.

RULES:
1. Consider every party involved. Do not take sides unless the law itself identifies a victim.
2. Cite specific Sections, Articles and Acts. Prefer BNS/BNSS/BSA; mention the old IPC/CrPC section where it helps.
3. Use short markdown headers (###) and bullet points. Avoid long paragraphs.
4. Reply in the language of the question (English or Hindi; Hindi in Devanagari).
5. Any "RELEVANT LEGAL CONTEXT" supplied is a hint. Use it only where it is accurate.

Respond with ONLY a JSON object, no code fences:
{
  "response": "markdown answer",
  "citations": ["Section X, Act — short description", ...],
  "disclaimer": "one-sentence legal disclaimer"
}"""

VISUAL_INSTRUCTION = (
    "The user attached an image (a notice, document or photo). Read it carefully and "
    "use what it shows when answering."
)


def compose_prompt(query: str, context: Optional[str] = None) -> str:
    prompt = f'User query: "{query}"'
    if context:
        prompt += f"\n\n{context}"
    return prompt


def _image_url(image_b64: str) -> str:
    if image_b64.startswith("data:"):
        return image_b64
    return f"data:image/jpeg;base64,{image_b64}"


class AIGateway:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "",
        vision_model: str = "",
        whisper_model: str = "",
        timeout: Optional[float] = None,
        client: Optional[Groq] = None,
    ):
        self.api_key = api_key
        self.model = model or Settings.GROQ_MODEL
        self.vision_model = vision_model or Settings.GROQ_VISION_MODEL
        self.whisper_model = whisper_model or Settings.GROQ_WHISPER_MODEL
        self.timeout = timeout if timeout is not None else Settings.AI_TIMEOUT_SECONDS
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self) -> Groq:
        if not self.configured:
            raise ConfigurationMissing("GROQ_API_KEY is not set")
        if self._client is None:
            self._client = Groq(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def _messages(self, query: str, context: Optional[str], image_b64: Optional[str]) -> list[dict]:
        prompt = compose_prompt(query, context)
        if image_b64:
            user_content = [
                {"type": "text", "text": f"{VISUAL_INSTRUCTION}\n\n{prompt}"},
                {"type": "image_url", "image_url": {"url": _image_url(image_b64)}},
            ]
        else:
            user_content = prompt
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    async def generate(self, query: str, context: Optional[str] = None, image_b64: Optional[str] = None) -> str:
        """Send one prompt and return the model's raw text."""
        client = self.client
        model = self.vision_model if image_b64 else self.model
        try:
            response = await asyncio.to_thread(
                client.chat.completions.create,
                model=model,
                messages=self._messages(query, context, image_b64),
                response_format={"type": "json_object"},
                temperature=0.2,
            )
        except GroqError as exc:
            logger.error("Groq completion failed (%s): %s", model, exc)
            raise UpstreamUnavailable(str(exc)) from exc
        except Exception as exc:
            logger.exception("Unexpected error calling Groq (%s)", model)
            raise UpstreamUnavailable(str(exc)) from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise UpstreamUnavailable("Groq returned no choices") from exc
        return content or ""

    async def transcribe(self, filename: str, data: bytes) -> str:
        """Audio bytes -> English transcript (Whisper translation)."""
        client = self.client
        name = Path(filename or "audio.webm").name
        try:
            response = await asyncio.to_thread(
                client.audio.translations.create,
                file=(name, data),
                model=self.whisper_model,
                response_format="text",
            )
        except Exception as exc:
            logger.error("Groq transcription failed: %s", exc)
            raise UpstreamUnavailable(str(exc)) from exc
        return str(response).strip()


_gateway: Optional[AIGateway] = None


def get_gateway() -> AIGateway:
    """Process-wide gateway built from settings (FastAPI dependency)."""
    global _gateway
    if _gateway is None:
        _gateway = AIGateway(api_key=Settings.GROQ_API_KEY)
    return _gateway
