from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import HttpClient, HttpResponse, LlmGatewayError, call_structured, chat

__all__ = ["HttpClient", "HttpResponse", "LlmGatewayError", "call_structured", "chat"]
