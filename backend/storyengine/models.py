from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .errors import MalformedInput

# Every finalized story has this many paragraphs
PARAGRAPH_COUNT = 5
# Each target word appears once per paragraph
OCCURRENCES_PER_WORD = 5
MAX_TARGET_WORDS = 5


class _Shape(BaseModel):
	# Dumps as camelCase (paragraphIndex, charStart, ...) for the session layer
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Occurrence(_Shape):
	word: str
	paragraph_index: int = Field(ge=0)
	sentence_index: int = Field(ge=0)
	# Offsets into the paragraph text; absent when not tracked
	char_start: Optional[int] = Field(default=None, ge=0)
	char_end: Optional[int] = Field(default=None, ge=0)

	@property
	def position(self) -> Tuple[int, int]:
		return (self.paragraph_index, self.sentence_index)

	@property
	def has_span(self) -> bool:
		return self.char_start is not None and self.char_end is not None


class ParseResult(_Shape):
	clean_paragraphs: List[str] = Field(default_factory=list)
	occurrences: List[Occurrence] = Field(default_factory=list)

	@property
	def empty(self) -> bool:
		return not self.occurrences


class ValidationResult(_Shape):
	ok: bool
	violations: List[str] = Field(default_factory=list)


class Story(_Shape):
	paragraphs: List[str] = Field(default_factory=list)
	target_occurrences: List[Occurrence] = Field(default_factory=list)
	noise_occurrences: List[Occurrence] = Field(default_factory=list)

	@model_validator(mode="after")
	def _occurrences_inside_story(self) -> "Story":
		count = len(self.paragraphs)
		for occ in [*self.target_occurrences, *self.noise_occurrences]:
			if occ.paragraph_index >= count:
				raise ValueError(
					f"occurrence of {occ.word!r} points at paragraph {occ.paragraph_index} "
					f"but the story has {count} paragraphs"
				)
		return self


class Phase(str, Enum):
	baseline = "baseline"
	learning = "learning"
	reinforcement = "reinforcement"
	recall = "recall"


class PhasePlacement(_Shape):
	phase: Phase
	paragraph_index: Optional[int] = None
	sentence_index: Optional[int] = None

	@property
	def positioned(self) -> bool:
		return self.paragraph_index is not None and self.sentence_index is not None


PhaseSchedule = Dict[Phase, PhasePlacement]


class GeneratedStory(_Shape):
	story: Story
	# Number of generator calls made (0 when no generator was available)
	attempts: int = 0
	used_fallback: bool = False
	# Violations of the last rejected candidate, if any
	violations: List[str] = Field(default_factory=list)


class StoryPair(_Shape):
	story_a: GeneratedStory
	story_b: GeneratedStory
	cross_story: ValidationResult

	def phase_schedule(self, paragraph_count: int = PARAGRAPH_COUNT) -> Dict[str, PhaseSchedule]:
		from .phases import build_phase_schedule

		words: List[str] = []
		for occ in [*self.story_a.story.target_occurrences, *self.story_b.story.target_occurrences]:
			if occ.word.lower() not in words:
				words.append(occ.word.lower())
		occurrences = self.story_a.story.target_occurrences + self.story_b.story.target_occurrences
		return build_phase_schedule(words, occurrences, paragraph_count)


def normalize_words(words: Iterable[object]) -> List[str]:
	out: List[str] = []
	for w in words:
		value = str(w if w is not None else "").strip().lower()
		if value and value not in out:
			out.append(value)
	return out


def check_target_words(words: List[str]) -> List[str]:
	if not words:
		raise MalformedInput("target word list is empty; a story needs at least one word")
	if len(words) > MAX_TARGET_WORDS:
		raise MalformedInput(
			f"target word list has {len(words)} words; at most {MAX_TARGET_WORDS} fit in one story"
		)
	return words
