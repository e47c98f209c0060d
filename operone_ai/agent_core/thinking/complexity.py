"""
Heuristic complexity scoring.

``ComplexityDetector`` decides whether an input needs the full pipeline. The
score is a sum of independent signals clamped to [0, 1]:

- input longer than ``max_simple_length``: +0.2
- any complex action keyword: +0.3
- any multi-step connective: +0.25
- exactly one question mark in a short (< 50 chars) input: -0.15
- code-like patterns: +0.2
- file paths or system references: +0.15

Below ``simple_threshold`` is simple (fast path), below
``complex_threshold`` is moderate, anything else is complex.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .types import ComplexityLevel, ComplexityResult

DEFAULT_COMPLEX_KEYWORDS = (
    "analyze", "search", "automate", "deploy", "refactor", "optimize",
    "implement", "create", "build", "setup", "configure", "integrate",
    "migrate", "transform", "process", "generate", "compile", "test",
    "debug", "profile", "benchmark", "monitor", "track", "sync",
)

DEFAULT_MULTI_STEP_INDICATORS = (
    "and then", "after that", "next", "finally", "first", "second",
    "then", "also", "additionally", "furthermore", "moreover",
    "all", "every", "each", "multiple", "several",
)

_CODE_MARKERS = ("```", "function", "class", "import")
_PATH_PATTERN = re.compile(r"/[\w-]+/|\\[\w-]+\\|@[\w-]+/")
_SYSTEM_MARKERS = ("package", "directory")

_SHORT_QUESTION_LENGTH = 50
_VERY_SHORT_LENGTH = 20


class ComplexityDetector:
    def __init__(
        self,
        *,
        simple_threshold: float = 0.3,
        complex_threshold: float = 0.7,
        max_simple_length: int = 100,
        complex_keywords: Optional[Sequence[str]] = None,
        multi_step_indicators: Optional[Sequence[str]] = None,
    ) -> None:
        if simple_threshold > complex_threshold:
            raise ValueError("simple_threshold must not exceed complex_threshold")
        self._simple_threshold = simple_threshold
        self._complex_threshold = complex_threshold
        self._max_simple_length = max_simple_length
        self._complex_keywords = tuple(DEFAULT_COMPLEX_KEYWORDS if complex_keywords is None else complex_keywords)
        self._multi_step_indicators = tuple(
            DEFAULT_MULTI_STEP_INDICATORS if multi_step_indicators is None else multi_step_indicators
        )

    def detect(self, text: str) -> ComplexityResult:
        normalized = text.lower().strip()
        score = 0.0
        reasons: List[str] = []

        if len(normalized) > self._max_simple_length:
            score += 0.2
            reasons.append("Input length exceeds simple threshold")

        if self._has_complex_keyword(normalized):
            score += 0.3
            reasons.append("Contains complex action keywords")

        if any(ind in normalized for ind in self._multi_step_indicators):
            score += 0.25
            reasons.append("Contains multi-step indicators")

        if normalized.count("?") == 1 and len(normalized) < _SHORT_QUESTION_LENGTH:
            score -= 0.15
            reasons.append("Simple question format")

        if any(marker in normalized for marker in _CODE_MARKERS):
            score += 0.2
            reasons.append("Contains code or technical patterns")

        if _PATH_PATTERN.search(normalized) or any(m in normalized for m in _SYSTEM_MARKERS):
            score += 0.15
            reasons.append("References files or system components")

        score = max(0.0, min(1.0, score))

        if score < self._simple_threshold:
            level, use_pipeline, steps = ComplexityLevel.simple, False, 1
        elif score < self._complex_threshold:
            level, use_pipeline, steps = ComplexityLevel.moderate, True, 3
        else:
            level, use_pipeline, steps = ComplexityLevel.complex, True, 5

        return ComplexityResult(
            level=level,
            score=score,
            reasoning="; ".join(reasons) or "Simple query with no complex indicators",
            should_use_pipeline=use_pipeline,
            estimated_steps=steps,
        )

    def is_simple(self, text: str) -> bool:
        """Quick check: very short inputs, or short questions without action keywords."""
        normalized = text.lower().strip()
        if len(normalized) < _VERY_SHORT_LENGTH:
            return True
        return (
            len(normalized) < self._max_simple_length
            and "?" in normalized
            and not self._has_complex_keyword(normalized)
        )

    def _has_complex_keyword(self, normalized: str) -> bool:
        return any(k in normalized for k in self._complex_keywords)
