"""Operone-AI.

This package contains the execution core of the Operone desktop assistant: the
machinery that turns a user request into scheduled, permission-checked tool
calls.

Core subpackages
----------------

- ``operone_ai.agent_core``:

  - A priority task orchestrator with dependency gating and multi-step AI tasks.
  - A tool registry and executor with permissions, timeouts and history.
  - A LangGraph-based thinking pipeline with a fast path for simple input and
    a safety gate before anything runs.

- ``operone_ai.core``:

  - Settings loaded from the environment, logging setup and error types.
"""
