from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Sequence

import pytest

from storyengine.errors import GenerationUnavailable
from storyengine.settings import Settings


class ScriptedGenerator:
	"""Text generator double that replays canned responses in order.

	Items may be strings (returned as-is), exceptions (raised) or zero-arg
	coroutine functions (awaited). Running out of items raises
	``GenerationUnavailable``.
	"""

	def __init__(self, *responses: Any) -> None:
		self.responses: List[Any] = list(responses)
		self.calls: List[Dict[str, Any]] = []

	async def generate(
		self,
		prompt: str,
		*,
		system: Optional[str] = None,
		json_mode: bool = False,
		temperature: Optional[float] = None,
	) -> str:
		self.calls.append({"prompt": prompt, "system": system, "json_mode": json_mode, "temperature": temperature})
		if not self.responses:
			raise GenerationUnavailable("script exhausted")
		item = self.responses.pop(0)
		if isinstance(item, BaseException):
			raise item
		if callable(item):
			return await item()
		return item


def story_json(paragraphs: Sequence[str]) -> str:
	return json.dumps({"story": {"paragraphs": list(paragraphs)}})


def marked_paragraphs(words: Sequence[str]) -> List[str]:
	"""Five bold-marked paragraphs that satisfy every placement rule."""
	paragraphs = []
	for p in range(5):
		shift = p % len(words)
		order = list(words[shift:]) + list(words[:shift])
		sentences = [f"Our **{w}** mattered in chapter {p + 1}." for w in order]
		sentences.append("Nobody expected anything else.")
		paragraphs.append(" ".join(sentences))
	return paragraphs


def doubled_paragraphs(words: Sequence[str]) -> List[str]:
	"""Like ``marked_paragraphs`` but the first word shows up twice in paragraph 2."""
	paragraphs = marked_paragraphs(words)
	paragraphs[2] += f" Again the **{words[0]}** returned."
	paragraphs[3] = paragraphs[3].replace(f"**{words[0]}**", words[0])
	return paragraphs


@pytest.fixture
def config() -> Settings:
	return Settings(
		_env_file=None,
		GEMINI_API_KEY=None,
		OPENROUTER_API_KEY=None,
		STORY_LLM_NOISE=False,
		STORY_GENERATION_TIMEOUT=5,
	)


@pytest.fixture
def words() -> List[str]:
	return ["harbor", "meadow"]
