"""Workflow state updates from rules and manual edits."""

from reco_engine.workflow.updater import (
    ASSIGNABLE_FIELDS,
    WorkflowChange,
    WorkflowStore,
    WorkflowUpdater,
    format_comment,
    prepend_comment,
    result_to_change,
)

__all__ = [
    "ASSIGNABLE_FIELDS",
    "WorkflowChange",
    "WorkflowStore",
    "WorkflowUpdater",
    "format_comment",
    "prepend_comment",
    "result_to_change",
]
