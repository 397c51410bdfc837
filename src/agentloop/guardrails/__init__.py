"""Guardrail contracts and runner."""

from agentloop.guardrails.base import (
    Guardrail,
    GuardrailResult,
    InputGuardrail,
    OutputGuardrail,
    ToolGuardrailData,
    ToolInputGuardrail,
    ToolOutputGuardrail,
)
from agentloop.guardrails.runner import GuardrailCheck, GuardrailRunner

__all__ = [
    "Guardrail",
    "GuardrailCheck",
    "GuardrailResult",
    "GuardrailRunner",
    "InputGuardrail",
    "OutputGuardrail",
    "ToolGuardrailData",
    "ToolInputGuardrail",
    "ToolOutputGuardrail",
]
