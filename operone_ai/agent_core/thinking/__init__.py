"""Thinking pipeline: complexity fast path, collaborator stages and safety gating."""

from .complexity import ComplexityDetector
from .events import (
    PIPELINE_TOPIC,
    PipelineEvent,
    PipelineEventStatus,
    PipelineStageName,
    create_pipeline_event,
    format_stage_name,
)
from .interfaces import (
    IntentEngine,
    MemoryRecall,
    MemoryRecord,
    MemoryStore,
    OutputEngine,
    PlanningEngine,
    ReasoningEngine,
    SafetyEngine,
    StepRunner,
    ToolRouter,
)
from .models import PipelineDeps
from .pipeline import ThinkingPipeline
from .types import (
    ComplexityLevel,
    ComplexityResult,
    ExecutionPlan,
    FormattedOutput,
    Intent,
    IntentCategory,
    OptimizationResult,
    OutputRequest,
    PipelineContext,
    PipelineResult,
    PlanStep,
    RoutingDecision,
    SafetyCheck,
    ToolRoute,
    ToolType,
)

__all__ = [
    "PIPELINE_TOPIC",
    "ComplexityDetector",
    "ComplexityLevel",
    "ComplexityResult",
    "ExecutionPlan",
    "FormattedOutput",
    "Intent",
    "IntentCategory",
    "IntentEngine",
    "MemoryRecall",
    "MemoryRecord",
    "MemoryStore",
    "OptimizationResult",
    "OutputEngine",
    "OutputRequest",
    "PipelineContext",
    "PipelineDeps",
    "PipelineEvent",
    "PipelineEventStatus",
    "PipelineResult",
    "PipelineStageName",
    "PlanStep",
    "PlanningEngine",
    "ReasoningEngine",
    "RoutingDecision",
    "SafetyCheck",
    "SafetyEngine",
    "StepRunner",
    "ThinkingPipeline",
    "ToolRoute",
    "ToolRouter",
    "ToolType",
    "create_pipeline_event",
    "format_stage_name",
]
