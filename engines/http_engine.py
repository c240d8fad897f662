"""engines.http_engine

Minimal HTTP engine adapter.

Posts one JSON request per invocation and expects the raw findings text back,
either as ``{"text": "..."}`` (``output`` / ``content`` are accepted too) or as
a plain-text body.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from review_bench.domain import EngineError, EngineErrorKind, IsolationContext

from .base import DEFAULT_TIMEOUT_SECONDS, FocusDirective

TEXT_KEYS = ("text", "output", "content")


class HttpEngine:
    def __init__(
        self,
        url: str,
        *,
        token_env: Optional[str] = None,
        models: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not url:
            raise ValueError("HttpEngine requires a url")
        self.url = url
        self.token_env = token_env
        self.models = dict(models or {})
        self._session = session

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token_env:
            token = os.environ.get(self.token_env)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def invoke(
        self,
        context: IsolationContext,
        scope: str,
        directive: FocusDirective,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        payload = {
            "source": context.label,
            "model": self.models.get(context.label, context.label),
            "context_id": context.context_id,
            "state_namespace": context.state_namespace,
            "scope": scope,
            "focus": directive.focus,
            "prompt": directive.prompt,
        }
        post = self._session.post if self._session is not None else requests.post
        try:
            resp = post(self.url, json=payload, headers=self._headers(), timeout=timeout_seconds)
            resp.raise_for_status()
        except requests.Timeout as e:
            raise EngineError(EngineErrorKind.TIMEOUT, str(e), focus=directive.focus) from e
        except requests.RequestException as e:
            raise EngineError(EngineErrorKind.CRASH, str(e), focus=directive.focus) from e

        return _extract_text(resp, focus=directive.focus)


def _extract_text(resp: requests.Response, *, focus: str) -> str:
    ctype = str(resp.headers.get("Content-Type") or "")
    if "json" not in ctype:
        text = resp.text or ""
        if not text.strip():
            raise EngineError(EngineErrorKind.MALFORMED_OUTPUT, "empty response body", focus=focus)
        return text

    try:
        data: Any = resp.json()
    except ValueError as e:
        raise EngineError(EngineErrorKind.MALFORMED_OUTPUT, f"invalid JSON: {e}", focus=focus) from e

    if isinstance(data, dict):
        for key in TEXT_KEYS:
            v = data.get(key)
            if isinstance(v, str) and v.strip():
                return v
    raise EngineError(
        EngineErrorKind.MALFORMED_OUTPUT,
        f"response has none of {list(TEXT_KEYS)}",
        focus=focus,
    )
