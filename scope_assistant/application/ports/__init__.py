"""Application ports package.

Re-exports the ports so adapters and use cases can import from one place.
"""

from scope_assistant.application.ports.clock_port import ClockPort
from scope_assistant.application.ports.embedding_port import EmbeddingPort
from scope_assistant.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from scope_assistant.application.ports.passage_store_port import PassageStorePort
from scope_assistant.application.ports.session_store_port import SessionStorePort
from scope_assistant.application.ports.telemetry_port import TelemetryPort

__all__ = [
    "ClockPort",
    "EmbeddingPort",
    "LLMPort",
    "ChatMessage",
    "LLMResponse",
    "PassageStorePort",
    "SessionStorePort",
    "TelemetryPort",
]
