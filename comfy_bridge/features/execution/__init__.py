"""Workflow execution: orchestration and output routing."""

from .executor import ExecutionJob, ExecutionState, RunReport, WorkflowExecutor
from .router import OutputConsumers, OutputMatch, ResultRouter, RoutedOutput, find_matching_output

__all__ = [
    "ExecutionJob",
    "ExecutionState",
    "RunReport",
    "WorkflowExecutor",
    "OutputConsumers",
    "OutputMatch",
    "ResultRouter",
    "RoutedOutput",
    "find_matching_output",
]
