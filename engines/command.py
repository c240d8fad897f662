"""engines.command

Run the analysis engine as a CLI subprocess.

The default command mirrors how the comparison is driven by hand::

    claude -p --model <label> --dangerously-skip-permissions \
        --no-session-persistence "<prompt>"

with the working directory set to the run's isolated working copy. The
command is a template: ``{label}``, ``{prompt}``, ``{scope}``, ``{focus}`` and
``{state_dir}`` are substituted per invocation.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from review_bench.domain import EngineError, EngineErrorKind, IsolationContext

from .base import DEFAULT_TIMEOUT_SECONDS, FocusDirective, render_prompt
from .core_cmd import run_cmd, which_or_raise

logger = logging.getLogger(__name__)

DEFAULT_COMMAND: tuple[str, ...] = (
    "claude",
    "-p",
    "--model",
    "{label}",
    "--dangerously-skip-permissions",
    "--no-session-persistence",
    "{prompt}",
)

# A nested session refuses to start while this is set.
DEFAULT_UNSET_ENV: tuple[str, ...] = ("CLAUDECODE",)


class CommandEngine:
    """Engine adapter that shells out (without a shell) to a CLI."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        *,
        models: Optional[Dict[str, str]] = None,
        unset_env: Sequence[str] = DEFAULT_UNSET_ENV,
        extra_env: Optional[Dict[str, str]] = None,
    ) -> None:
        if not command:
            raise ValueError("CommandEngine requires a non-empty command template")
        self.command = tuple(command)
        # Optional source label -> model name mapping (defaults to the label itself).
        self.models = dict(models or {})
        self.unset_env = tuple(unset_env)
        self.extra_env = dict(extra_env or {})

    def build_command(self, context: IsolationContext, scope: str, directive: FocusDirective) -> List[str]:
        values = {
            "label": self.models.get(context.label, context.label),
            "prompt": render_prompt(scope, directive),
            "scope": scope,
            "focus": directive.focus,
            "state_dir": str(context.state_dir),
        }
        return [part.format(**values) for part in self.command]

    def invoke(
        self,
        context: IsolationContext,
        scope: str,
        directive: FocusDirective,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        cmd = self.build_command(context, scope, directive)
        try:
            cmd[0] = which_or_raise(cmd[0])
        except FileNotFoundError as e:
            raise EngineError(EngineErrorKind.CRASH, str(e), focus=directive.focus) from e

        env = {
            "REVIEW_CONTEXT_ID": context.context_id,
            "REVIEW_STATE_NAMESPACE": context.state_namespace,
            "REVIEW_STATE_DIR": str(context.state_dir),
        }
        env.update(self.extra_env)

        logger.debug("engine command [%s/%s]: %s", context.label, directive.focus, cmd[0])
        res = run_cmd(
            cmd,
            cwd=context.storage_handle,
            timeout_seconds=timeout_seconds,
            env=env,
            unset_env=self.unset_env,
        )

        if res.timed_out:
            raise EngineError(
                EngineErrorKind.TIMEOUT,
                f"no output after {timeout_seconds:g}s",
                focus=directive.focus,
            )
        if res.exit_code != 0:
            tail = (res.stderr or res.stdout).strip().splitlines()[-5:]
            raise EngineError(
                EngineErrorKind.CRASH,
                f"exit code {res.exit_code}: " + " | ".join(tail),
                focus=directive.focus,
            )
        if not res.stdout.strip():
            raise EngineError(EngineErrorKind.MALFORMED_OUTPUT, "empty output", focus=directive.focus)
        return res.stdout
