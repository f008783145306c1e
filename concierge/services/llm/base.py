from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Union


@dataclass
class LLMResponse:
    content: str
    model: Optional[str] = None
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations raise TransportError on any failure, including an empty output.
    """

    @abstractmethod
    def create_response(
        self,
        input: Union[str, List[dict]],
        model: Optional[str] = None,
        instructions: Optional[str] = None,
    ) -> LLMResponse:
        """Single model completion."""

    @abstractmethod
    def run_agent(
        self,
        agent_id: str,
        input: str,
        instructions: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> LLMResponse:
        """Completion through a hosted agent."""
