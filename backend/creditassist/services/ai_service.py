import base64
import httpx
import structlog
from typing import Any, Dict, List, Optional

logger = structlog.get_logger()

DOCUMENT_ANALYSIS_PROMPT = """You are a financial analyst for TN Credit Solutions reviewing a client's credit report (or tax / collection document).

OUTPUT RULES:
- Output ONLY the structured analysis. No greeting, no apology, no preamble, no closing remarks.
- Never say you cannot view the document. Describe what is visible.
- Use this structure:

# Current Status
Credit Score: <score> (<rating>)
Overall Risk Level: <high/medium/low>
Key Concern: <main issue>

# Top Priority Issues
1. <most critical issue> - Impact: <details>
2. <second issue> - Impact: <details>
3. <third issue> - Impact: <details>

# Payment History
Late Payments: <count and timeline>
On-Time Payments: <count>

# Credit Utilization
Current Rate: <percent>
Recommended: <percent>

# Collections & Delinquencies
Active Collections: <count>
Derogatory Marks: <details>

# Immediate Action Plan
1. <specific action with timeline>
2. <specific action with timeline>

# 90-Day Strategy
- <focus area and expected improvement>

Be specific with numbers, percentages and action steps. If a value is not visible, write "Not shown"."""


class GroqService:
    """
    Client for the Groq chat-completions API (OpenAI compatible).
    Every call is safe: failures are logged and None is returned, callers
    decide on their own fallback.
    """

    BASE_URL = "https://api.groq.com/openai/v1/chat/completions"

    def __init__(self, api_key: str, text_model: str, vision_model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.text_model = text_model
        self.vision_model = vision_model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "GroqService":
        return cls(
            api_key=settings.GROQ_API_KEY,
            text_model=settings.GROQ_TEXT_MODEL,
            vision_model=settings.GROQ_VISION_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _call_groq(self, messages: List[Dict[str, Any]], model: str,
                         max_tokens: int = 1024, temperature: float = 0.3) -> Optional[str]:
        """
        Private safe wrapper for Groq HTTP calls.
        """
        if not self.api_key:
            logger.warning("groq_api_key_missing")
            return None

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.BASE_URL,
                    headers=headers,
                    json=payload,
                    timeout=self.timeout
                )

                if response.status_code != 200:
                    logger.error("groq_api_error", status=response.status_code, body=response.text[:500])
                    return None

                data = response.json()
                content = data["choices"][0]["message"]["content"]
                return content.strip() if content else None

            except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
                logger.error("groq_request_failed", error=str(e), model=model)
                return None

    async def analyze_document(self, image_bytes: bytes, mime_type: str) -> Optional[str]:
        """
        Vision analysis of one image (an uploaded picture or the rasterized
        first page of a PDF).
        """
        b64_image = base64.b64encode(image_bytes).decode('utf-8')
        image_url = f"data:{mime_type};base64,{b64_image}"

        messages = [
            {"role": "system", "content": DOCUMENT_ANALYSIS_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Analyze this document and return the structured analysis."},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": image_url
                        }
                    }
                ]
            }
        ]

        logger.info("document_analysis_requested", mime_type=mime_type, size_bytes=len(image_bytes))
        return await self._call_groq(messages, model=self.vision_model, max_tokens=1500, temperature=0.2)

    async def chat_reply(self, system_prompt: str, conversation: List[Dict[str, str]]) -> Optional[str]:
        messages = [{"role": "system", "content": system_prompt}] + conversation
        return await self._call_groq(messages, model=self.text_model, max_tokens=512)
