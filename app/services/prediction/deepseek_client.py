"""
DeepSeek chat completions client (OpenAI-compatible API).

Usage:
    client = DeepSeekClient()
    answer = await client.ask(context, "Who wins on Saturday?")
"""
from typing import Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_deepseek_request
from app.services.sync.exceptions import ConfigurationError, PredictionError

logger = get_logger(__name__)

TEMPERATURE = 0.7
MAX_TOKENS = 2000

SYSTEM_PROMPT = """Hey! You're a friendly soccer expert who loves talking about match predictions and analysis.
You're chatting with someone who wants insights about upcoming matches.

The user will provide upcoming match(es) and historical match data. Your job is to analyze this information and answer their question in a friendly, conversational way.

Here's how to chat:
- Be friendly and casual, like you're talking to a friend about soccer
- Answer naturally and directly - don't mention that you received data or were "fed" information
- Don't use phrases like "according to the data you gave me" or "based on the data provided"
- Just answer as if you naturally know about these matches and teams
- Look for patterns in the historical matches
- Talk about how weather might affect the games
- Mention specific examples from matches when relevant
- Give your thoughts and predictions naturally
- Be helpful and specific, but keep it conversational
- If they ask for predictions, give your best guess with reasoning
- Answer their question directly without referencing that you received data"""

CONVERSATION_SUFFIX = "\n- Feel free to reference what we talked about earlier in this conversation"

Message = Dict[str, str]


class DeepSeekClient:
    """Thin async client for `POST /chat/completions`."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.DEEPSEEK_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.DEEPSEEK_BASE_URL).rstrip("/")
        self.model = model or settings.DEEPSEEK_MODEL
        self.timeout = timeout or settings.DEEPSEEK_TIMEOUT
        self._transport = transport
        if not self.api_key:
            logger.warning("DEEPSEEK_API_KEY is not set; predictions are unavailable")

    @staticmethod
    def build_messages(context: str, question: str, history: Optional[List[Message]] = None) -> List[Message]:
        """
        Assemble the chat payload.

        A fresh conversation sends the context with the question; a follow-up
        replays the history (whose first user turn already holds the
        context) and appends only the new question.
        """
        if history:
            messages = [{"role": "system", "content": SYSTEM_PROMPT + CONVERSATION_SUFFIX}]
            messages.extend({"role": m["role"], "content": m["content"]} for m in history)
            messages.append({"role": "user", "content": question})
            return messages

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"{context}\n\nQuestion: {question}"},
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _post_with_retry(self, payload: Dict) -> Dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            return response.json()

    async def ask(self, context: str, question: str, history: Optional[List[Message]] = None) -> str:
        """
        Ask a question, optionally continuing a conversation.

        Raises:
            ConfigurationError: If DEEPSEEK_API_KEY is missing
            PredictionError: If the provider fails or returns no answer
        """
        if not self.api_key:
            raise ConfigurationError("DEEPSEEK_API_KEY is not configured")

        messages = self.build_messages(context, question, history)
        logger.info(
            f"[DEEPSEEK] Sending request with {len(messages)} messages, "
            f"context length: {len(context)} characters"
        )

        try:
            data = await self._post_with_retry({
                "model": self.model,
                "messages": messages,
                "temperature": TEMPERATURE,
                "max_tokens": MAX_TOKENS,
            })
        except (httpx.HTTPError, ValueError) as e:
            record_deepseek_request("error")
            logger.error(f"[DEEPSEEK] Error calling DeepSeek API: {e}")
            raise PredictionError(f"DeepSeek API error: {e}") from e

        try:
            answer = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            answer = None
        if not answer:
            record_deepseek_request("empty")
            raise PredictionError("DeepSeek API error: No response from DeepSeek API")

        record_deepseek_request("success")
        logger.info(f"[DEEPSEEK] Received response ({len(answer)} characters)")
        return answer
