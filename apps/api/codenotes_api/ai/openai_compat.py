from __future__ import annotations

import logging
from dataclasses import asdict, replace

import httpx

from .providers import SYSTEM_PROMPT, ExplainRequest, ExplainResponse, Message, explain_prompt

logger = logging.getLogger("codenotes.ai")


class ExternalAIError(RuntimeError):
    pass


def _join_base(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def normalize_chat_completions_url(endpoint: str) -> str:
    base = endpoint.rstrip("/")
    if "/chat/completions" in base:
        return base
    if base.endswith("/v1"):
        return base + "/chat/completions"
    return _join_base(base, "/v1/chat/completions")


def _post_json(url: str, *, headers: dict, payload: dict, timeout_s: float) -> dict:
    try:
        with httpx.Client(timeout=timeout_s) as client:
            resp = client.post(url, headers=headers, json=payload)
    except httpx.HTTPError as e:
        logger.warning("external_request_failed", extra={"url": url, "error": str(e)})
        raise ExternalAIError("external_request_failed") from e

    if resp.status_code >= 400:
        logger.warning("external_http_error", extra={"url": url, "status": resp.status_code, "body": resp.text[:240]})
        raise ExternalAIError(f"external_http_{resp.status_code}")

    try:
        data = resp.json()
    except ValueError as e:
        raise ExternalAIError("external_bad_response") from e
    if not isinstance(data, dict):
        raise ExternalAIError("external_bad_response")
    return data


def ollama_generate(req: ExplainRequest, *, timeout_s: float = 60.0) -> ExplainResponse:
    url = _join_base(req.endpoint, "/api/generate")
    payload = {
        "model": req.model,
        "prompt": f"{SYSTEM_PROMPT}\n{explain_prompt(req.source_relative_path, req.selected_code)}",
        "stream": False,
    }
    data = _post_json(url, headers={"Content-Type": "application/json"}, payload=payload, timeout_s=timeout_s)
    content = data.get("response")
    if not isinstance(content, str):
        raise ExternalAIError("external_bad_response")
    return ExplainResponse(provider=f"external:ollama:{req.model}", text=content, raw=data)


def openai_chat_completion(req: ExplainRequest, *, timeout_s: float = 60.0) -> ExplainResponse:
    if not req.api_key:
        raise ExternalAIError("api_key_missing")
    url = normalize_chat_completions_url(req.endpoint)
    messages = [
        Message(role="system", content=SYSTEM_PROMPT),
        Message(role="user", content=explain_prompt(req.source_relative_path, req.selected_code)),
    ]
    payload = {
        "model": req.model,
        "messages": [asdict(m) for m in messages],
        "temperature": 0.2,
    }
    headers = {"Authorization": f"Bearer {req.api_key}", "Content-Type": "application/json"}
    data = _post_json(url, headers=headers, payload=payload, timeout_s=timeout_s)
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ExternalAIError("external_bad_response") from e
    if not isinstance(content, str):
        raise ExternalAIError("external_bad_response")
    return ExplainResponse(provider=f"external:openai:{req.model}", text=content, raw=data)


def explain_selection(req: ExplainRequest, *, timeout_s: float = 60.0) -> ExplainResponse:
    selected = req.selected_code.strip()
    if not selected:
        raise ExternalAIError("selection_empty")
    if not req.endpoint or not req.model:
        raise ExternalAIError("ai_config_incomplete")
    req = replace(req, selected_code=selected)
    if req.mode == "ollama":
        return ollama_generate(req, timeout_s=timeout_s)
    if req.mode == "openai":
        return openai_chat_completion(req, timeout_s=timeout_s)
    raise ExternalAIError("ai_mode_unsupported")
