"""Prompt assembly for the generative backend."""

from .builder import PromptBuilder, PromptContext, format_metrics_context, prepare_files_content

__all__ = ["PromptBuilder", "PromptContext", "format_metrics_context", "prepare_files_content"]
