"""
Director feedback on interactive layout edits.

- summary: scene summary text sent with each request
- coordinator: debounces edit bursts into single requests
"""

from .coordinator import EditBurst, EditFeedbackCoordinator, FeedbackSlot
from .summary import feedback_prompt, scene_summary

__all__ = ["EditBurst", "EditFeedbackCoordinator", "FeedbackSlot", "feedback_prompt", "scene_summary"]
