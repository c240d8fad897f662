"""engines.stub

Deterministic engine used by tests and offline dry runs.

Responses are looked up by ``(label, focus)``, then ``focus``, then ``label``.
A response may be:

* a string - returned as the raw findings text
* an exception instance - raised (use :class:`EngineError` to simulate
  engine failures)
* a callable ``(context, scope, directive) -> str``
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from review_bench.domain import EngineError, EngineErrorKind, IsolationContext

from .base import DEFAULT_TIMEOUT_SECONDS, FocusDirective

StubResponse = Union[str, BaseException, Callable[[IsolationContext, str, FocusDirective], str]]

DEFAULT_RESPONSE = "No findings."


class StubEngine:
    def __init__(
        self,
        responses: Optional[Mapping[Any, StubResponse]] = None,
        *,
        default: Optional[StubResponse] = DEFAULT_RESPONSE,
        delays: Optional[Mapping[Any, float]] = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.delays = dict(delays or {})
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, str, str]] = []

    def _lookup(self, table: Mapping[Any, Any], label: str, focus: str) -> Any:
        for key in ((label, focus), focus, label):
            if key in table:
                return table[key]
        return None

    def invoke(
        self,
        context: IsolationContext,
        scope: str,
        directive: FocusDirective,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        with self._lock:
            self.calls.append((context.label, directive.focus, context.context_id))

        delay = self._lookup(self.delays, context.label, directive.focus)
        if delay:
            time.sleep(float(delay))

        resp = self._lookup(self.responses, context.label, directive.focus)
        if resp is None:
            resp = self.default
        if resp is None:
            raise EngineError(EngineErrorKind.MALFORMED_OUTPUT, "no stub response", focus=directive.focus)
        if isinstance(resp, BaseException):
            raise resp
        if callable(resp):
            return str(resp(context, scope, directive))
        return str(resp)
