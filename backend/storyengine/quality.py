from __future__ import annotations
import re
from collections import Counter
from typing import List, Sequence

from pydantic import BaseModel, Field

from .models import OCCURRENCES_PER_WORD, Occurrence


class QualityReport(BaseModel):
	score: int
	readability: float
	vocabulary_diversity: float
	target_word_distribution: float
	issues: List[str] = Field(default_factory=list)


def analyze_story_quality(
	paragraphs: Sequence[str],
	occurrences: Sequence[Occurrence],
	target_words: Sequence[str],
) -> QualityReport:
	"""Rough readability and distribution score for a story, 0-100."""
	issues: List[str] = []
	text = " ".join(paragraphs)
	tokens = re.findall(r"\b\w+\b", text)
	sentence_count = max(len(re.findall(r"[.!?]", text)), 1)
	word_count = max(len(text.split()), 1)
	avg_sentence_len = word_count / sentence_count
	avg_word_len = (sum(len(t) for t in tokens) / len(tokens)) if tokens else 0.0

	readability = 100.0
	if avg_sentence_len > 20:
		readability -= 20
		issues.append("Sentences too long (avg > 20 words)")
	if avg_word_len > 7:
		readability -= 10
		issues.append("Words too complex (avg length > 7)")

	unique = len({t.lower() for t in tokens})
	diversity = min(100.0, (unique / word_count) * 100 * 1.5)

	counts = Counter(o.word.lower() for o in occurrences)
	distribution = 100.0
	for w in target_words:
		count = counts.get(w.lower(), 0)
		if count != OCCURRENCES_PER_WORD:
			distribution -= 25
			issues.append(f'Word "{w}" appears {count} times (expected {OCCURRENCES_PER_WORD})')
	distribution = max(0.0, distribution)

	score = round(readability * 0.3 + diversity * 0.3 + distribution * 0.4)
	return QualityReport(
		score=score,
		readability=readability,
		vocabulary_diversity=diversity,
		target_word_distribution=distribution,
		issues=issues,
	)
