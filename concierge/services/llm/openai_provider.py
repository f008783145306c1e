from typing import List, Optional, Union

import httpx

from concierge.errors import TransportError
from concierge.logging_config import get_logger
from concierge.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")


def extract_output_text(data: dict) -> str:
    """Read the reply text from a Responses API body.

    Prefers the ``output_text`` convenience field and falls back to joining the
    ``output[].content[].text`` parts.
    """
    output_text = data.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    parts = []
    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and isinstance(content.get("text"), str):
                parts.append(content["text"])
    return "".join(parts).strip()


class OpenAIProvider(LLMProvider):
    """OpenAI Responses API provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def create_response(
        self,
        input: Union[str, List[dict]],
        model: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {"model": model, "input": input}
        if instructions:
            payload["instructions"] = instructions
        logger.debug(f"OpenAI request: model={model}, input_items={len(input) if isinstance(input, list) else 1}")
        return self._post(f"{self.base_url}/responses", payload, model)

    def run_agent(
        self,
        agent_id: str,
        input: str,
        instructions: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> LLMResponse:
        payload = {"input": input}
        if instructions:
            payload["instructions"] = instructions
        if metadata:
            payload["metadata"] = metadata
        logger.debug(f"OpenAI agent request: agent_id={agent_id}")
        return self._post(f"{self.base_url}/agents/{agent_id}/responses", payload, None)

    def _post(self, url: str, payload: dict, model: Optional[str]) -> LLMResponse:
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise TransportError(f"OpenAI request failed: {e}") from e

        logger.debug(f"OpenAI response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI error: status={response.status_code}, body={response.text[:300]}")
            raise TransportError(f"OpenAI API error: {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("OpenAI returned a non-JSON body", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise TransportError("OpenAI returned an unexpected body", status_code=response.status_code)

        content = extract_output_text(data)
        if not content:
            raise TransportError("OpenAI returned empty output", status_code=response.status_code)

        return LLMResponse(content=content, model=data.get("model", model), usage=data.get("usage"))
