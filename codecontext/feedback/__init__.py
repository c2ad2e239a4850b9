"""Implicit relevance feedback from consecutive retrieval events."""

from codecontext.feedback.feedback_loop import FeedbackStore, infer_signals

__all__ = ["FeedbackStore", "infer_signals"]
