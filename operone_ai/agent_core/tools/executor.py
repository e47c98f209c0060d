from __future__ import annotations

"""Tool executor.

``ToolExecutor`` runs one tool call end-to-end:

1. Resolve the tool in the ``ToolRegistry``.
2. Check permissions through the optional ``PermissionValidator``.
3. Validate parameters against the definition.
4. Capture a "before" snapshot for reversible tools (``capture_state``).
5. Run the executor function under a timeout.
6. Capture an "after" snapshot and attach undo metadata on success.
7. Record the invocation through the optional ``HistoryRecorder``.

Failures are returned as ``ToolExecutionResult(success=False, error_kind=...)``
and never raised.

Timeouts are advisory by default: the caller stops waiting but the underlying
call keeps running and its eventual outcome is discarded. Set
``cancel_on_timeout`` to cancel the call instead.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from pydantic import Field

from operone_ai.core.errors import ToolErrorKind
from operone_ai.core.logging_config import get_logger

from ..schemas.base import BaseSchema
from .interfaces import HistoryEntry, HistoryRecorder, PermissionValidator, SnapshotStateCapture, StateCapture
from .registry import ToolRegistry
from .schema import (
    RegisteredTool,
    ToolExecutionContext,
    ToolExecutionResult,
    ToolParameter,
    ToolResultMetadata,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


class ToolExecutionOptions(BaseSchema):
    """Per-call execution switches."""

    timeout_ms: Optional[int] = Field(default=None, ge=1, description="Overrides the executor default when set")
    validate_permissions: bool = True
    record_history: bool = True
    capture_state: bool = False
    cancel_on_timeout: Optional[bool] = Field(default=None, description="Overrides the executor default when set")


@dataclass
class ToolInvocation:
    """One entry of a batch passed to ``execute_parallel``/``execute_sequence``."""

    tool_name: str
    params: Dict[str, Any]
    context: ToolExecutionContext
    options: Optional[ToolExecutionOptions] = field(default=None)


def json_type_of(value: Any) -> str:
    """Name the JSON type of a Python value, matching ``ToolParameter.type``."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if value is None:
        return "null"
    return "object"


def validate_parameters(params: Mapping[str, Any], definitions: Sequence[ToolParameter]) -> Optional[str]:
    """
    Validate call parameters against their declarations.

    Every required parameter must be present. A declared parameter that is
    present must have the declared JSON type; ``object`` parameters are not
    checked. Unknown extra parameters are tolerated.

    Returns:
        An error message naming the first offending parameter, or None.
    """
    for p in definitions:
        if p.required and p.name not in params:
            return f"Missing required parameter: {p.name}"

    by_name = {p.name: p for p in definitions}
    for name, value in params.items():
        p = by_name.get(name)
        if p is None or p.type == "object":
            continue
        actual = json_type_of(value)
        if actual != p.type:
            return f"Invalid type for parameter '{name}': expected {p.type}, got {actual}"
    return None


class ToolExecutor:
    """Validate, authorize, time out and run tool invocations."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        permission_validator: Optional[PermissionValidator] = None,
        history_recorder: Optional[HistoryRecorder] = None,
        state_capture: Optional[StateCapture] = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cancel_on_timeout: bool = False,
    ) -> None:
        """
        Initialize the executor.

        Args:
            registry: Where tools are looked up.
            permission_validator: Optional authorization collaborator.
            history_recorder: Optional audit sink.
            state_capture: Snapshot hook for reversible tools (defaults to ``SnapshotStateCapture``).
            default_timeout_ms: Timeout used when a call does not override it.
            cancel_on_timeout: Cancel timed-out calls instead of abandoning them.
        """
        self._registry = registry
        self._permission_validator = permission_validator
        self._history_recorder = history_recorder
        self._state_capture: StateCapture = state_capture or SnapshotStateCapture()
        self._default_timeout_ms = default_timeout_ms
        self._cancel_on_timeout = cancel_on_timeout
        self._abandoned: Set[asyncio.Future[Any]] = set()

    @property
    def abandoned_count(self) -> int:
        """Number of timed-out calls that are still running in the background."""
        return len(self._abandoned)

    async def execute(
        self,
        tool_name: str,
        params: Mapping[str, Any],
        context: ToolExecutionContext,
        options: Optional[ToolExecutionOptions] = None,
    ) -> ToolExecutionResult:
        """Execute a tool by name. Never raises for tool-level failures."""
        opts = options or ToolExecutionOptions()
        params = dict(params)
        start = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000.0

        try:
            tool = self._registry.get(tool_name)
            if tool is None:
                logger.warning(f"Tool '{tool_name}' not found")
                return ToolExecutionResult.failure(
                    f"Tool '{tool_name}' not found", kind=ToolErrorKind.not_found, duration=elapsed_ms()
                )

            definition = tool.definition
            if opts.validate_permissions and self._permission_validator is not None:
                allowed = await self._permission_validator.validate(context.user_id, list(definition.required_permissions))
                if not allowed:
                    logger.warning(f"Permission denied: user '{context.user_id}' cannot run '{tool_name}'")
                    return ToolExecutionResult.failure(
                        f"Insufficient permissions for tool '{tool_name}': "
                        f"requires {', '.join(definition.required_permissions)}",
                        kind=ToolErrorKind.permission_denied,
                        duration=elapsed_ms(),
                    )

            validation_error = validate_parameters(params, definition.parameters)
            if validation_error is not None:
                logger.warning(f"Parameter validation failed for '{tool_name}': {validation_error}")
                return ToolExecutionResult.failure(
                    validation_error, kind=ToolErrorKind.parameter_validation, duration=elapsed_ms()
                )

            capture = opts.capture_state and definition.reversible
            state_before: Any = None
            if capture:
                state_before = await self._state_capture.capture(tool_name, params, context)

            result = await self._invoke(tool, params, context, opts)

            state_after: Any = None
            if capture and result.success:
                state_after = await self._state_capture.capture(tool_name, params, context)

            update: Dict[str, Any] = {"duration": elapsed_ms()}
            if definition.reversible and result.success:
                meta = result.metadata or ToolResultMetadata()
                update["metadata"] = meta.model_copy(
                    update={
                        "reversible": True,
                        "undo_command": meta.undo_command or f"undo:{tool_name}",
                        "state_before": state_before,
                        "state_after": state_after,
                    }
                )
            result = result.model_copy(update=update)

            if opts.record_history and self._history_recorder is not None:
                await self._record(
                    HistoryEntry(
                        tool_name=tool_name,
                        params=params,
                        context=context,
                        result=result,
                        state_before=state_before,
                        state_after=state_after,
                        reversible=definition.reversible,
                    )
                )

            logger.debug(f"Tool '{tool_name}' finished: success={result.success} duration={result.duration:.1f}ms")
            return result
        except Exception as e:
            logger.warning(f"Tool '{tool_name}' failed before completion: {e}")
            return ToolExecutionResult.failure(str(e), kind=ToolErrorKind.execution_failure, duration=elapsed_ms())

    async def execute_parallel(self, invocations: Sequence[ToolInvocation]) -> List[ToolExecutionResult]:
        """Run every invocation concurrently; one result per invocation, in order."""
        outcomes = await asyncio.gather(
            *(self.execute(i.tool_name, i.params, i.context, i.options) for i in invocations),
            return_exceptions=True,
        )
        results: List[ToolExecutionResult] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                results.append(ToolExecutionResult.failure(str(outcome), kind=ToolErrorKind.execution_failure))
            else:
                results.append(outcome)
        return results

    async def execute_sequence(self, invocations: Sequence[ToolInvocation]) -> List[ToolExecutionResult]:
        """Run invocations in order, stopping after the first failed result."""
        results: List[ToolExecutionResult] = []
        for i in invocations:
            result = await self.execute(i.tool_name, i.params, i.context, i.options)
            results.append(result)
            if not result.success:
                break
        return results

    async def _invoke(
        self,
        tool: RegisteredTool,
        params: Dict[str, Any],
        context: ToolExecutionContext,
        opts: ToolExecutionOptions,
    ) -> ToolExecutionResult:
        timeout_ms = opts.timeout_ms or self._default_timeout_ms
        cancel = self._cancel_on_timeout if opts.cancel_on_timeout is None else opts.cancel_on_timeout
        try:
            raw = await self._run_with_timeout(tool, params, context, timeout_ms / 1000.0, cancel)
        except asyncio.TimeoutError:
            logger.warning(f"Tool '{tool.name}' timed out after {timeout_ms}ms (cancelled={cancel})")
            return ToolExecutionResult.failure(
                f"Tool '{tool.name}' execution timed out after {timeout_ms}ms", kind=ToolErrorKind.timeout
            )
        except Exception as e:
            logger.warning(f"Tool '{tool.name}' raised: {type(e).__name__}: {e}")
            return ToolExecutionResult.failure(str(e) or type(e).__name__, kind=ToolErrorKind.execution_failure)
        return self._coerce_result(raw)

    async def _run_with_timeout(
        self,
        tool: RegisteredTool,
        params: Dict[str, Any],
        context: ToolExecutionContext,
        timeout_s: float,
        cancel: bool,
    ) -> Any:
        call = asyncio.ensure_future(tool.executor(params, context))
        if cancel:
            return await asyncio.wait_for(call, timeout_s)
        try:
            return await asyncio.wait_for(asyncio.shield(call), timeout_s)
        except asyncio.TimeoutError:
            self._abandon(call)
            raise

    def _abandon(self, call: asyncio.Future[Any]) -> None:
        self._abandoned.add(call)
        call.add_done_callback(self._on_abandoned_done)

    def _on_abandoned_done(self, call: asyncio.Future[Any]) -> None:
        self._abandoned.discard(call)
        if call.cancelled():
            return
        exc = call.exception()
        if exc is not None:
            logger.debug(f"Discarded failure of a timed-out tool call: {exc}")
        else:
            logger.debug("Discarded result of a timed-out tool call")

    @staticmethod
    def _coerce_result(raw: Any) -> ToolExecutionResult:
        """Accept a ``ToolExecutionResult``, a mapping shaped like one, or a bare payload."""
        if isinstance(raw, ToolExecutionResult):
            return raw
        if isinstance(raw, Mapping) and "success" in raw:
            return ToolExecutionResult.model_validate(dict(raw))
        return ToolExecutionResult(success=True, data=raw)

    async def _record(self, entry: HistoryEntry) -> None:
        try:
            await self._history_recorder.record(entry)  # type: ignore[union-attr]
        except Exception as e:
            logger.warning(f"History recorder failed for '{entry.tool_name}': {e}")
