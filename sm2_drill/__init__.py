"""SM-2 spaced repetition over an outline document of question/answer cards."""

__version__ = "2.0.0"
