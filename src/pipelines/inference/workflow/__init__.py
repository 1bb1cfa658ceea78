"""Tool-calling workflow module for the inference pipeline."""

from .agentic import ConversationState, ToolCallingWorkflow, merge_items

__all__ = [
    "ConversationState",
    "ToolCallingWorkflow",
    "merge_items",
]
