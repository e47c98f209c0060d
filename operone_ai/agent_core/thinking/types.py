from __future__ import annotations

"""Records exchanged between the thinking pipeline and its collaborators.

Collaborators may return either these models or plain mappings; the pipeline
validates mappings into the models below. Field aliases are camelCase so that
JSON produced by external engines (``shouldUsePipeline``, ``blockedReasons``)
validates without translation.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..schemas.base import BaseSchema, epoch_ms
from ..schemas.domain import RiskLevel

OutputFormat = Literal["markdown", "json", "plain", "code", "stream"]
ExecutionMode = Literal["sequential", "parallel", "conditional"]


class PipelineModel(BaseSchema):
    """``BaseSchema`` accepting camelCase aliases for every field."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )


class ComplexityLevel(str, Enum):
    simple = "simple"
    moderate = "moderate"
    complex = "complex"


class ComplexityResult(PipelineModel):
    level: ComplexityLevel
    score: float = Field(ge=0.0, le=1.0)
    reasoning: str
    should_use_pipeline: bool
    estimated_steps: Optional[int] = None


class IntentCategory(str, Enum):
    file_read = "file_read"
    file_write = "file_write"
    file_search = "file_search"
    shell_command = "shell_command"
    network_request = "network_request"
    github_query = "github_query"
    automation = "automation"
    query_knowledge = "query_knowledge"
    multi_pc = "multi_pc"
    memory_recall = "memory_recall"
    code_analysis = "code_analysis"
    planning = "planning"
    unknown = "unknown"


class SubIntent(PipelineModel):
    category: IntentCategory
    confidence: float = Field(ge=0.0, le=1.0)
    multi_intent: bool = False


class Intent(PipelineModel):
    category: IntentCategory
    confidence: float = Field(ge=0.0, le=1.0)
    entities: Dict[str, Any] = Field(default_factory=dict)
    multi_intent: bool = False
    sub_intents: Optional[List[SubIntent]] = None


class ToolType(str, Enum):
    """Tool families a plan step can be assigned to."""

    fs = "fs"
    shell = "shell"
    networking = "networking"
    github = "github"
    mcp = "mcp"
    ai = "ai"
    memory = "memory"
    sdb = "sdb"
    automation = "automation"
    peer = "peer"


class PlanStep(PipelineModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    description: str
    tool: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    estimated_duration: Optional[float] = None
    can_parallelize: bool = False
    priority: int = Field(default=5, ge=1, le=10)


class ExecutionPlan(PipelineModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    steps: List[PlanStep] = Field(default_factory=list)
    total_estimated_duration: Optional[float] = None
    parallel_groups: Optional[List[List[str]]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OptimizationResult(PipelineModel):
    original_plan: ExecutionPlan
    optimized_plan: ExecutionPlan
    optimizations: List[str] = Field(default_factory=list)
    parallel_groups: Optional[List[List[str]]] = None
    estimated_improvement: Optional[float] = None


class SafetyCheck(PipelineModel):
    allowed: bool
    risk_level: RiskLevel
    risks: List[str] = Field(default_factory=list)
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None
    blocked_reasons: Optional[List[str]] = None


class ToolRoute(PipelineModel):
    tool: str
    method: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    fallback: Optional[ToolRoute] = None
    timeout: Optional[float] = None
    retries: int = Field(default=0, ge=0)


class RoutingDecision(PipelineModel):
    routes: List[ToolRoute] = Field(default_factory=list)
    execution_mode: ExecutionMode = "sequential"
    streaming_enabled: bool = False


class OutputRequest(PipelineModel):
    """What the pipeline hands to ``OutputEngine.format``."""

    content: Any
    format: Optional[OutputFormat] = None
    error: bool = False
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FormattedOutput(PipelineModel):
    format: OutputFormat
    content: str
    metadata: Optional[Dict[str, Any]] = None
    error: bool = False
    error_message: Optional[str] = None


class PipelineContext(PipelineModel):
    """Mutable record threaded through one pipeline run. Never shared across runs."""

    input: str
    user_id: Optional[str] = None
    session_id: str = Field(default_factory=lambda: str(uuid4()))
    start_time: float = Field(default_factory=epoch_ms)

    complexity: Optional[ComplexityResult] = None
    intent: Optional[Intent] = None
    memory_context: Optional[List[Any]] = None
    plan: Optional[ExecutionPlan] = None
    optimization: Optional[OptimizationResult] = None
    safety: Optional[SafetyCheck] = None
    routing: Optional[RoutingDecision] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PipelineResult(PipelineModel):
    success: bool
    output: FormattedOutput
    context: PipelineContext
    execution_time: float = Field(description="Milliseconds from context start to result")
    steps_executed: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    requires_confirmation: bool = False
