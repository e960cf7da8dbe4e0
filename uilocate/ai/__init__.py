"""AI utilities: prompt building, oracle transport and multi-strategy response parsing."""

from .analysis_parser import parse_alignment_response, parse_systematic_response
from .openai_client import OpenAIVisionTransport, OracleTransport, get_openai_transport
from .oracle import OracleClient
from .prompt_builder import (
    build_alignment_prompt,
    build_contextual_prompt,
    build_detection_prompt,
    build_messages,
    build_systematic_prompt,
)
from .response_parser import is_generic_response, parse_detection_response

__all__ = [
    "OracleClient",
    "OracleTransport",
    "OpenAIVisionTransport",
    "get_openai_transport",
    "build_alignment_prompt",
    "build_contextual_prompt",
    "build_detection_prompt",
    "build_messages",
    "build_systematic_prompt",
    "is_generic_response",
    "parse_alignment_response",
    "parse_detection_response",
    "parse_systematic_response",
]
