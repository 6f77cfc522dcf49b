from __future__ import annotations
import re
from typing import List

# Terminal punctuation followed by whitespace ends a sentence
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def split_sentences(paragraph: str) -> List[str]:
	pieces = [s for s in _SENTENCE_BREAK.split(paragraph or "") if s]
	if not pieces and paragraph:
		return [paragraph]
	return pieces


def sentence_index_at(paragraph: str, offset: int) -> int:
	"""Index of the sentence of ``paragraph`` that contains ``offset``.

	Offsets that fall past the last sentence clamp to it, and a paragraph
	without terminal punctuation is one sentence.
	"""
	count = len(split_sentences(paragraph))
	if count <= 1:
		return 0
	index = 0
	for match in _SENTENCE_BREAK.finditer(paragraph):
		if match.end() > offset:
			break
		index += 1
	return min(index, count - 1)
