"""Bridge from ``ToolExecutor`` to the orchestrator's AI-task step callback.

``TaskOrchestrator`` runs AI-task steps through a callback
``(tool, args, step_id) -> result`` that must raise to fail the step.
``ToolStepAdapter`` provides that callback on top of ``ToolExecutor.execute``:
a successful result yields its ``data``; an unsuccessful one raises
``ToolStepError`` carrying the tool's error text verbatim.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from operone_ai.core.errors import ToolStepError

from .executor import ToolExecutionOptions, ToolExecutor
from .schema import ToolExecutionContext

logger = logging.getLogger(__name__)


class ToolStepAdapter:
    def __init__(
        self,
        executor: ToolExecutor,
        context: ToolExecutionContext,
        *,
        options: Optional[ToolExecutionOptions] = None,
    ) -> None:
        """
        Args:
            executor: Executor used for every step.
            context: Caller identity applied to all steps run through this adapter.
            options: Execution options applied to all steps.
        """
        self._executor = executor
        self._context = context
        self._options = options

    async def __call__(self, tool: str, args: Dict[str, Any], step_id: str) -> Any:
        result = await self._executor.execute(tool, args, self._context, self._options)
        if not result.success:
            logger.debug(f"Step {step_id} failed in tool '{tool}': {result.error}")
            raise ToolStepError(result.error or f"Tool '{tool}' failed", tool_name=tool, kind=result.error_kind)
        return result.data
