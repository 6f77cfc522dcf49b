from __future__ import annotations
from typing import List, Optional, Sequence


class StoryEngineError(Exception):
	"""Base class for errors raised by the story engine."""


class GenerationUnavailable(StoryEngineError):
	"""The text generator failed or returned nothing usable.

	Covers transport errors, timeouts, malformed JSON and refusals alike.
	The orchestrator recovers from it with the fallback story; it never
	reaches the caller of ``StoryGenerator.generate``.
	"""


class ValidationFailed(StoryEngineError):
	"""Candidate text broke one or more placement rules.

	Internal signal that drives the retry and fallback transitions.
	"""

	def __init__(self, violations: Sequence[str], message: Optional[str] = None) -> None:
		self.violations: List[str] = list(violations)
		super().__init__(message or f"{len(self.violations)} placement violation(s)")


class MalformedInput(StoryEngineError, ValueError):
	"""Target word list is empty or larger than a story can hold."""
