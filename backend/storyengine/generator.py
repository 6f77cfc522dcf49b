"""
Story generation orchestrator
=============================

Turns a target word list into an accepted story. The external generator is
asked for bold-marked prose, the markers are parsed, and the placements are
validated. A rejected candidate gets exactly one stricter re-prompt listing
what went wrong; after that, or whenever the generator is unavailable, the
deterministic fallback story is used. Callers always get an accepted story
back for valid input; only ``MalformedInput`` escapes.

States::

	REQUESTING -> PARSING -> VALIDATING -> ACCEPTED
	                  |            |
	                  |            +-> RETRY_REQUESTING -> PARSING -> VALIDATING
	                  +------------+-> FALLBACK -> ACCEPTED

The only suspension points are the generator calls (story and noise words).
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, List, Optional, Sequence

from .errors import GenerationUnavailable, StoryEngineError, ValidationFailed
from .fallback import generate_fallback
from .json_utils import story_paragraphs
from .markers import parse_markers
from .models import (
	PARAGRAPH_COUNT,
	GeneratedStory,
	Occurrence,
	ParseResult,
	Story,
	StoryPair,
	check_target_words,
	normalize_words,
)
from .noise import select_noise
from .prompts import story_system_prompt, story_user_prompt, strict_retry_system_prompt
from .quality import analyze_story_quality
from .settings import Settings, settings as default_settings
from .textgen import TextGenerator, request_json
from .validator import validate_cross_story, validate_story

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
	REQUESTING = "requesting"
	PARSING = "parsing"
	VALIDATING = "validating"
	RETRY_REQUESTING = "retry_requesting"
	FALLBACK = "fallback"
	ACCEPTED = "accepted"


class _Run:
	"""Mutable bookkeeping for one ``generate`` call."""

	def __init__(self, words: List[str]) -> None:
		self.words = words
		self.state = GenerationState.REQUESTING
		self.attempts = 0
		self.retries = 0
		self.raw_paragraphs: List[str] = []
		self.parsed: Optional[ParseResult] = None
		self.violations: List[str] = []
		self.story: Optional[Story] = None
		self.used_fallback = False


def keep_target_occurrences(words: Sequence[str], occurrences: Sequence[Occurrence]) -> List[Occurrence]:
	"""Drop marked spans that are not target words and spell the rest as the target list does."""
	canonical = {w.lower(): w for w in words}
	kept: List[Occurrence] = []
	for o in occurrences:
		word = canonical.get(o.word.lower())
		if word is not None:
			kept.append(o if o.word == word else o.model_copy(update={"word": word}))
	return kept


def check_placements(words: Sequence[str], parsed: ParseResult) -> None:
	result = validate_story(words, parsed.clean_paragraphs, parsed.occurrences)
	if not result.ok:
		raise ValidationFailed(result.violations)


class StoryGenerator:
	def __init__(self, client: Optional[TextGenerator] = None, *, config: Optional[Settings] = None) -> None:
		self.client = client
		self.config = config or default_settings
		self._owns_client = False

	@classmethod
	def from_settings(cls, config: Optional[Settings] = None) -> "StoryGenerator":
		"""Build a generator backed by Gemini, or by the fallback alone when no key is configured."""
		from .gemini_client import GeminiClient

		cfg = config or default_settings
		if not cfg.gemini_api_key:
			logger.warning("GEMINI_API_KEY is not configured; stories will use the fallback generator")
			return cls(None, config=cfg)
		generator = cls(GeminiClient(config=cfg), config=cfg)
		generator._owns_client = True
		return generator

	async def aclose(self) -> None:
		if self._owns_client and self.client is not None:
			await self.client.aclose()  # type: ignore[attr-defined]

	async def __aenter__(self) -> "StoryGenerator":
		return self

	async def __aexit__(self, *exc: Any) -> None:
		await self.aclose()

	async def generate(
		self,
		target_words: Sequence[str],
		*,
		cefr: Optional[str] = None,
		topic: Optional[str] = None,
		with_noise: bool = True,
	) -> GeneratedStory:
		words = check_target_words(normalize_words(target_words))
		cefr = cefr or self.config.default_cefr
		run = _Run(words)
		if self.client is None:
			run.state = GenerationState.FALLBACK

		while run.state is not GenerationState.ACCEPTED:
			logger.debug("Story generation state: %s", run.state.value)
			if run.state in (GenerationState.REQUESTING, GenerationState.RETRY_REQUESTING):
				await self._request(run, cefr, topic)
			elif run.state is GenerationState.PARSING:
				self._parse(run)
			elif run.state is GenerationState.VALIDATING:
				self._validate(run)
			elif run.state is GenerationState.FALLBACK:
				if run.violations:
					logger.warning("Story validation failed - using fallback: %s", run.violations)
				run.story = generate_fallback(words)
				run.used_fallback = True
				run.state = GenerationState.ACCEPTED

		story = run.story
		if story is None:
			raise StoryEngineError(f"Story generation ended in state {run.state.value} without a story")
		if with_noise and len(story.paragraphs) == PARAGRAPH_COUNT:
			noise = await select_noise(
				story.paragraphs,
				story.target_occurrences,
				words,
				# Templated fallback text gets local selection only
				client=None if run.used_fallback else self.client,
				config=self.config,
			)
			story = story.model_copy(update={"noise_occurrences": noise})

		quality = analyze_story_quality(story.paragraphs, story.target_occurrences, words)
		logger.info(
			"Story accepted (attempts=%d, fallback=%s, occurrences=%d, noise=%d, quality=%d)",
			run.attempts,
			run.used_fallback,
			len(story.target_occurrences),
			len(story.noise_occurrences),
			quality.score,
		)
		return GeneratedStory(
			story=story,
			attempts=run.attempts,
			used_fallback=run.used_fallback,
			violations=run.violations,
		)

	async def _request(self, run: _Run, cefr: str, topic: Optional[str]) -> None:
		retrying = run.state is GenerationState.RETRY_REQUESTING
		system = strict_retry_system_prompt(run.violations) if retrying else story_system_prompt()
		temperature = self.config.retry_temperature if retrying else self.config.story_temperature
		run.attempts += 1
		try:
			data = await request_json(
				self.client,  # type: ignore[arg-type]
				story_user_prompt(cefr, run.words, topic),
				system=system,
				temperature=temperature,
				timeout=self.config.generation_timeout_seconds,
			)
			paragraphs = story_paragraphs(data, PARAGRAPH_COUNT)
			if not paragraphs:
				raise GenerationUnavailable("Generator response has no story paragraphs")
		except GenerationUnavailable as err:
			logger.warning("Story generation attempt %d failed; using fallback: %s", run.attempts, err)
			run.state = GenerationState.FALLBACK
			return
		run.raw_paragraphs = paragraphs
		run.state = GenerationState.PARSING

	def _parse(self, run: _Run) -> None:
		parsed = parse_markers(run.raw_paragraphs)
		occurrences = keep_target_occurrences(run.words, parsed.occurrences)
		if not occurrences:
			logger.warning(
				"No marked target words found in generated story (attempt %d, paragraphs=%d)",
				run.attempts,
				len(parsed.clean_paragraphs),
			)
			run.state = GenerationState.FALLBACK
			return
		run.parsed = ParseResult(clean_paragraphs=parsed.clean_paragraphs, occurrences=occurrences)
		run.state = GenerationState.VALIDATING

	def _validate(self, run: _Run) -> None:
		parsed = run.parsed
		if parsed is None:
			raise StoryEngineError("Validation reached before any story was parsed")
		try:
			check_placements(run.words, parsed)
		except ValidationFailed as err:
			run.violations = err.violations
			if run.retries < self.config.max_retries:
				run.retries += 1
				logger.info("Story attempt %d rejected (%d violations); retrying with strict prompt", run.attempts, len(err.violations))
				run.state = GenerationState.RETRY_REQUESTING
			else:
				run.state = GenerationState.FALLBACK
			return
		run.violations = []
		run.story = Story(paragraphs=parsed.clean_paragraphs, target_occurrences=parsed.occurrences)
		run.state = GenerationState.ACCEPTED


async def generate_story(
	target_words: Sequence[str],
	*,
	client: Optional[TextGenerator] = None,
	cefr: Optional[str] = None,
	topic: Optional[str] = None,
	config: Optional[Settings] = None,
) -> GeneratedStory:
	return await StoryGenerator(client, config=config).generate(target_words, cefr=cefr, topic=topic)


async def generate_story_pair(
	generator: StoryGenerator,
	words_a: Sequence[str],
	words_b: Sequence[str],
	*,
	cefr: Optional[str] = None,
	topic: Optional[str] = None,
) -> StoryPair:
	"""Generate both stories of an experiment concurrently.

	The cross-story position rule is checked after both are accepted and only
	reported; neither story is regenerated because of it. Both word lists are
	checked before either request starts, and if one side fails the other is
	cancelled rather than left running.
	"""
	check_target_words(normalize_words(words_a))
	check_target_words(normalize_words(words_b))
	tasks = [
		asyncio.ensure_future(generator.generate(words_a, cefr=cefr, topic=topic)),
		asyncio.ensure_future(generator.generate(words_b, cefr=cefr, topic=topic)),
	]
	try:
		story_a, story_b = await asyncio.gather(*tasks)
	except BaseException:
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)
		raise
	cross = validate_cross_story(story_a.story.target_occurrences, story_b.story.target_occurrences)
	if not cross.ok:
		logger.warning("Stories share target positions: %s", cross.violations)
	return StoryPair(story_a=story_a, story_b=story_b, cross_story=cross)
