from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Role = Literal["system", "user", "assistant"]
ExplainMode = Literal["ollama", "openai"]


@dataclass(frozen=True)
class Message:
    role: Role
    content: str


@dataclass(frozen=True)
class ExplainRequest:
    mode: ExplainMode
    endpoint: str
    model: str
    source_relative_path: str
    selected_code: str
    api_key: str | None = None


@dataclass(frozen=True)
class ExplainResponse:
    provider: str
    text: str
    raw: dict | None = None


SYSTEM_PROMPT = "You are a code reading assistant. Structure the answer so it can be pasted into a Markdown note."


def explain_prompt(source_relative_path: str, selected_code: str) -> str:
    return (
        "Explain what the following code does, what its key variables mean, "
        "and which edge cases it may hit.\n"
        f"File: {source_relative_path}\n"
        f"Code:\n\n{selected_code}\n"
    )
