from __future__ import annotations
from typing import Optional


class ScenarioError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(ScenarioError):
    """A node type or node instance is defined incorrectly."""


class BootError(ScenarioError):
    def __init__(self, node_id: Optional[str], message: str):
        super().__init__(f"Node '{node_id}' failed to boot: {message}")
        self.node_id = node_id


class EvaluationError(ScenarioError):
    def __init__(self, node_id: Optional[str], cause: object):
        super().__init__(f"Node '{node_id}' failed to evaluate: {cause}")
        self.node_id = node_id
        self.cause = cause
