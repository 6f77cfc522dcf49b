from __future__ import annotations
import logging
import random
from typing import List, Optional, Sequence

from .errors import MalformedInput
from .models import MAX_TARGET_WORDS, PARAGRAPH_COUNT, Occurrence, Story

logger = logging.getLogger(__name__)

MIN_SENTENCES_PER_PARAGRAPH = 4


def _sentence(paragraph: int, sentence: int, word: Optional[str] = None) -> str:
	base = f"Paragraph {paragraph + 1}, sentence {sentence + 1}"
	return f"{base} {word}." if word else f"{base}."


def _orders(words: Sequence[str], rng: random.Random) -> List[List[str]]:
	orders: List[List[str]] = []
	last: Optional[List[str]] = None
	for _ in range(PARAGRAPH_COUNT):
		order = list(words)
		rng.shuffle(order)
		# Consecutive paragraphs must not repeat the same sequence
		if last is not None and order == last:
			order = order[1:] + order[:1]
		orders.append(order)
		last = order
	return orders


def generate_fallback(target_words: Sequence[str], *, rng: Optional[random.Random] = None) -> Story:
	"""Synthesize a templated story that always passes placement validation.

	Each paragraph gets one sentence per word (at least four sentences) and
	each word lands in its own sentence, once per paragraph. Without an
	explicit ``rng`` the shuffle is seeded from the word list so the same
	words always give the same story.
	"""
	words = list(target_words)
	if not words:
		return Story(paragraphs=[], target_occurrences=[])
	if len(words) > MAX_TARGET_WORDS:
		raise MalformedInput(f"fallback story supports at most {MAX_TARGET_WORDS} words (got {len(words)})")
	rng = rng or random.Random("|".join(words))
	sentences_per_paragraph = max(MIN_SENTENCES_PER_PARAGRAPH, len(words))

	paragraphs: List[str] = []
	occurrences: List[Occurrence] = []
	for p_idx, order in enumerate(_orders(words, rng)):
		sentences: List[str] = []
		offset = 0
		for s_idx in range(sentences_per_paragraph):
			word = order[s_idx] if s_idx < len(order) else None
			text = _sentence(p_idx, s_idx, word)
			if word is not None:
				# The word sits right before the closing period
				start = offset + len(text) - 1 - len(word)
				occurrences.append(
					Occurrence(
						word=word,
						paragraph_index=p_idx,
						sentence_index=s_idx,
						char_start=start,
						char_end=start + len(word),
					)
				)
			sentences.append(text)
			offset += len(text) + 1
		paragraphs.append(" ".join(sentences))

	logger.debug("Built fallback story for %d words", len(words))
	return Story(paragraphs=paragraphs, target_occurrences=occurrences)
