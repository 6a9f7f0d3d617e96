import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from .config import JudgeConfig
from .errors import CredentialMissingError
from .openai_model_capabilities import supports_temperature


logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7


def build_chat_request(
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float = DEFAULT_TEMPERATURE,
    response_format: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    request: Dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    if supports_temperature(model):
        request["temperature"] = temperature
    if response_format is not None:
        request["response_format"] = response_format
    return request


class ChatModelClient:
    """
    One chat-completion call per `complete`, returning the first choice's text.

    Provider errors propagate unchanged and the SDK's own retries are disabled;
    callers that want backoff wrap `complete` themselves.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        timeout_seconds: float = 120.0,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise CredentialMissingError()
        self.client = client or AsyncOpenAI(
            api_key=api_key.strip(),
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    async def complete(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = DEFAULT_TEMPERATURE,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        request = build_chat_request(
            model=model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            response_format=response_format,
        )
        completion = await self.client.chat.completions.create(**request)
        if not completion.choices:
            logger.info("Model %s returned no choices; treating output as empty.", model)
            return ""
        message = completion.choices[0].message
        if message is None:
            return ""
        return message.content or ""


def build_model_client(api_key: Optional[str], config: JudgeConfig) -> ChatModelClient:
    return ChatModelClient(
        api_key=api_key,
        timeout_seconds=config.request_timeout_seconds,
        base_url=config.openai_base_url,
    )
