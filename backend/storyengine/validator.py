from __future__ import annotations
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .models import OCCURRENCES_PER_WORD, PARAGRAPH_COUNT, Occurrence, Story, ValidationResult


def _prefix(label: Optional[str]) -> str:
	return f"Story {label}: " if label else ""


def _key(word: str) -> str:
	return word.strip().lower()


def validate_story(
	target_words: Sequence[str],
	paragraphs: Sequence[str],
	occurrences: Sequence[Occurrence],
	*,
	paragraph_count: int = PARAGRAPH_COUNT,
	min_only: bool = False,
	check_paragraph_count: bool = True,
	label: Optional[str] = None,
) -> ValidationResult:
	"""Check one story's target placements; every rule runs and every violation is kept.

	Rules: exact paragraph count, exact (or with ``min_only`` minimum) count
	per word, at most one occurrence of a word per paragraph, and at most one
	distinct target word per sentence.
	"""
	pre = _prefix(label)
	violations: List[str] = []

	if check_paragraph_count and len(paragraphs) != paragraph_count:
		violations.append(f"{pre}story must have exactly {paragraph_count} paragraphs (got {len(paragraphs)}).")

	totals = Counter(_key(o.word) for o in occurrences)
	for word in target_words:
		count = totals.get(_key(word), 0)
		if min_only:
			if count < OCCURRENCES_PER_WORD:
				violations.append(f'{pre}word "{word}" must appear at least {OCCURRENCES_PER_WORD} times (got {count}).')
		elif count != OCCURRENCES_PER_WORD:
			violations.append(f'{pre}word "{word}" must appear exactly {OCCURRENCES_PER_WORD} times (got {count}).')

	per_paragraph: Counter[Tuple[int, str]] = Counter((o.paragraph_index, _key(o.word)) for o in occurrences)
	for (paragraph, word), count in sorted(per_paragraph.items()):
		if count > 1:
			violations.append(f'{pre}word "{word}" appears {count} times in paragraph {paragraph} (max 1).')

	by_sentence: Dict[Tuple[int, int], List[str]] = {}
	for o in occurrences:
		words = by_sentence.setdefault(o.position, [])
		if _key(o.word) not in words:
			words.append(_key(o.word))
	for (paragraph, sentence), words in sorted(by_sentence.items()):
		if len(words) > 1:
			joined = ", ".join(f'"{w}"' for w in words)
			violations.append(
				f"{pre}different target words {joined} share paragraph {paragraph} sentence {sentence}."
			)

	return ValidationResult(ok=not violations, violations=violations)


def validate_cross_story(
	occurrences_a: Sequence[Occurrence],
	occurrences_b: Sequence[Occurrence],
) -> ValidationResult:
	"""A word must not sit at the same paragraph/sentence in both stories."""
	seen = {(_key(o.word), o.paragraph_index, o.sentence_index) for o in occurrences_a}
	violations: List[str] = []
	reported = set()
	for o in occurrences_b:
		key = (_key(o.word), o.paragraph_index, o.sentence_index)
		if key in seen and key not in reported:
			reported.add(key)
			violations.append(
				f'Cross-story: word "{key[0]}" appears at identical position in A and B '
				f"(paragraph {o.paragraph_index} sentence {o.sentence_index})."
			)
	return ValidationResult(ok=not violations, violations=violations)


def validate_story_pair(
	target_words: Sequence[str],
	story_a: Story,
	story_b: Story,
	*,
	words_b: Optional[Sequence[str]] = None,
) -> ValidationResult:
	"""Validate both stories of an experiment together, cross-story rule included."""
	results = [
		validate_story(target_words, story_a.paragraphs, story_a.target_occurrences, label="A"),
		validate_story(
			target_words if words_b is None else words_b,
			story_b.paragraphs,
			story_b.target_occurrences,
			label="B",
		),
		validate_cross_story(story_a.target_occurrences, story_b.target_occurrences),
	]
	violations = [v for r in results for v in r.violations]
	return ValidationResult(ok=not violations, violations=violations)
