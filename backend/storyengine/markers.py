"""Extraction of ``**word**`` markers from generated paragraphs.

The generator is asked to wrap every target word in double asterisks so the
occurrences can be counted without guessing at inflections. Parsing is
best-effort: spans are matched left to right and the first match wins.
An opening ``**`` is closed by the nearest following ``**`` and a span may
not contain an asterisk, so matched spans never overlap. With nested
markers such as ``**a **b** c**`` that yields ``a`` and ``c``; anything left
unmatched, including a lone ``**``, stays in the text as literal characters.
"""
from __future__ import annotations
import re
from typing import List, Sequence

from .models import Occurrence, ParseResult
from .sentences import sentence_index_at

MARKER = "**"
_MARKED_SPAN = re.compile(r"\*\*([^*]+?)\*\*")


def parse_paragraph(raw: str, paragraph_index: int) -> tuple[str, List[Occurrence]]:
	pieces: List[str] = []
	spans: List[tuple[str, int, int]] = []
	length = 0
	last = 0
	for match in _MARKED_SPAN.finditer(raw or ""):
		before = raw[last:match.start()]
		pieces.append(before)
		length += len(before)
		inner = match.group(1)
		word = inner.strip()
		if word:
			# Keep the whitespace that sat inside the markers outside the word span
			lead = inner[: len(inner) - len(inner.lstrip())]
			trail = inner[len(inner.rstrip()):]
			pieces.append(lead)
			length += len(lead)
			spans.append((word, length, length + len(word)))
			pieces.append(word)
			length += len(word)
			pieces.append(trail)
			length += len(trail)
		else:
			pieces.append(inner)
			length += len(inner)
		last = match.end()
	pieces.append((raw or "")[last:])
	clean = "".join(pieces)
	occurrences = [
		Occurrence(
			word=word,
			paragraph_index=paragraph_index,
			sentence_index=sentence_index_at(clean, start),
			char_start=start,
			char_end=end,
		)
		for word, start, end in spans
	]
	return clean, occurrences


def parse_markers(raw_paragraphs: Sequence[str]) -> ParseResult:
	clean_paragraphs: List[str] = []
	occurrences: List[Occurrence] = []
	for idx, raw in enumerate(raw_paragraphs):
		clean, found = parse_paragraph(raw, idx)
		clean_paragraphs.append(clean)
		occurrences.extend(found)
	return ParseResult(clean_paragraphs=clean_paragraphs, occurrences=occurrences)


def wrap(word: str) -> str:
	return f"{MARKER}{word}{MARKER}"
