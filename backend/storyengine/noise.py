"""Noise (distractor) word selection.

Noise words are ordinary words of the finalized story that the session
layer flags for attention checks. They never share a sentence with a target
word, are never a target word themselves and never sit right next to one.
The local selector below is the reference behaviour; a generator proposal
is only used after passing the same checks.
"""
from __future__ import annotations
import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .errors import GenerationUnavailable
from .models import Occurrence
from .prompts import noise_system_prompt, noise_user_prompt
from .sentences import sentence_index_at
from .settings import Settings, settings as default_settings
from .textgen import TextGenerator, request_json

logger = logging.getLogger(__name__)

NOISE_PER_PARAGRAPH = 2
# Candidate minimum lengths, tried in order until one yields candidates
_MIN_LENGTHS = (4, 3, 2)
_WORD_TOKEN = re.compile(r"\w+")
_ALPHA_RUN = re.compile(r"[A-Za-z]{2,}")
_LETTER = re.compile(r"[A-Za-z]")
# Gap of at most this many non-letter characters counts as adjacent
_ADJACENT_GAP = 3

Span = Tuple[int, int]


class _Candidate:
	__slots__ = ("word", "start", "end", "sentence_index")

	def __init__(self, word: str, start: int, end: int, sentence_index: int) -> None:
		self.word = word
		self.start = start
		self.end = end
		self.sentence_index = sentence_index


def _word_spans(paragraph: str, word: str) -> List[Span]:
	pattern = re.compile(rf"(?<![A-Za-z]){re.escape(word)}(?![A-Za-z])", re.IGNORECASE)
	return [(m.start(), m.end()) for m in pattern.finditer(paragraph)]


class _ParagraphRules:
	"""Exclusion rules for one paragraph, built fresh per call."""

	def __init__(self, paragraph: str, targets: Sequence[Occurrence], target_words: Set[str]) -> None:
		self.paragraph = paragraph
		self.target_words = target_words
		self.target_sentences = {o.sentence_index for o in targets}
		self.target_spans: List[Span] = []
		for o in targets:
			if o.has_span:
				self.target_spans.append((o.char_start, o.char_end))  # type: ignore[arg-type]
				continue
			# No offsets: locate the word inside its own sentence
			for start, end in _word_spans(paragraph, o.word):
				if sentence_index_at(paragraph, start) == o.sentence_index:
					self.target_spans.append((start, end))
					break

	def is_adjacent(self, start: int, end: int) -> bool:
		for t_start, t_end in self.target_spans:
			if end <= t_start:
				between = self.paragraph[end:t_start]
			elif t_end <= start:
				between = self.paragraph[t_end:start]
			else:
				# Overlaps the target span itself
				return True
			if len(between) <= _ADJACENT_GAP and not _LETTER.search(between):
				return True
		return False

	def admits(self, cand: _Candidate) -> bool:
		if cand.word.lower() in self.target_words:
			return False
		if cand.sentence_index in self.target_sentences:
			return False
		return not self.is_adjacent(cand.start, cand.end)

	def candidates(self) -> List[_Candidate]:
		for min_len in _MIN_LENGTHS:
			alpha = re.compile(rf"[A-Za-z]{{{min_len},}}")
			found = [
				self.candidate_at(m.group(0), m.start())
				for m in _WORD_TOKEN.finditer(self.paragraph)
				if alpha.fullmatch(m.group(0))
			]
			found = [c for c in found if c.word.lower() not in self.target_words]
			if found:
				return found
		# Last resort: alphabetic runs anywhere, even inside mixed tokens
		found = [self.candidate_at(m.group(0), m.start()) for m in _ALPHA_RUN.finditer(self.paragraph)]
		return [c for c in found if c.word.lower() not in self.target_words]

	def candidate_at(self, word: str, start: int) -> _Candidate:
		return _Candidate(word, start, start + len(word), sentence_index_at(self.paragraph, start))


def _targets_by_paragraph(occurrences: Sequence[Occurrence]) -> Dict[int, List[Occurrence]]:
	grouped: Dict[int, List[Occurrence]] = {}
	for o in occurrences:
		grouped.setdefault(o.paragraph_index, []).append(o)
	return grouped


def _to_occurrence(cand: _Candidate, paragraph_index: int) -> Occurrence:
	return Occurrence(
		word=cand.word,
		paragraph_index=paragraph_index,
		sentence_index=cand.sentence_index,
		char_start=cand.start,
		char_end=cand.end,
	)


def select_noise_local(
	paragraphs: Sequence[str],
	target_occurrences: Sequence[Occurrence],
	target_words: Sequence[str],
	*,
	per_paragraph: int = NOISE_PER_PARAGRAPH,
) -> List[Occurrence]:
	lowered = {w.lower() for w in target_words}
	grouped = _targets_by_paragraph(target_occurrences)
	noise: List[Occurrence] = []
	for p_idx, paragraph in enumerate(paragraphs):
		rules = _ParagraphRules(paragraph, grouped.get(p_idx, []), lowered)
		pool = [c for c in rules.candidates() if rules.admits(c)]
		pool.sort(key=lambda c: c.start)
		noise.extend(_to_occurrence(c, p_idx) for c in pool[:per_paragraph])
	return noise


async def select_noise_llm(
	client: TextGenerator,
	paragraphs: Sequence[str],
	target_occurrences: Sequence[Occurrence],
	target_words: Sequence[str],
	*,
	per_paragraph: int = NOISE_PER_PARAGRAPH,
	config: Optional[Settings] = None,
) -> Optional[List[Occurrence]]:
	"""Ask the generator for noise words and keep only the ones that pass the local rules.

	Returns ``None`` when the generator is unavailable or nothing usable came back.
	"""
	cfg = config or default_settings
	try:
		data = await request_json(
			client,
			noise_user_prompt(paragraphs, target_words, target_occurrences),
			system=noise_system_prompt(per_paragraph),
			temperature=cfg.noise_temperature,
			timeout=cfg.generation_timeout_seconds,
		)
	except GenerationUnavailable as err:
		logger.info("Noise proposal unavailable, using local selection: %s", err)
		return None
	proposals = data.get("noiseWords")
	if not isinstance(proposals, list):
		return None

	by_paragraph: Dict[int, List[str]] = {}
	for item in proposals:
		if not isinstance(item, dict):
			continue
		word, p_idx = item.get("word"), item.get("paragraphIndex")
		if not isinstance(word, str) or not word.strip() or not isinstance(p_idx, int) or isinstance(p_idx, bool):
			continue
		if 0 <= p_idx < len(paragraphs):
			by_paragraph.setdefault(p_idx, []).append(word.strip())

	lowered = {w.lower() for w in target_words}
	grouped = _targets_by_paragraph(target_occurrences)
	noise: List[Occurrence] = []
	for p_idx, words in sorted(by_paragraph.items()):
		paragraph = paragraphs[p_idx]
		rules = _ParagraphRules(paragraph, grouped.get(p_idx, []), lowered)
		taken: Set[Span] = set()
		for word in words:
			if len(taken) >= per_paragraph:
				break
			for start, end in _word_spans(paragraph, word):
				cand = rules.candidate_at(paragraph[start:end], start)
				if (start, end) not in taken and rules.admits(cand):
					taken.add((start, end))
					noise.append(_to_occurrence(cand, p_idx))
					break
	noise.sort(key=lambda o: (o.paragraph_index, o.char_start or 0))
	return noise or None


async def select_noise(
	paragraphs: Sequence[str],
	target_occurrences: Sequence[Occurrence],
	target_words: Sequence[str],
	*,
	client: Optional[TextGenerator] = None,
	config: Optional[Settings] = None,
) -> List[Occurrence]:
	cfg = config or default_settings
	if client is not None and cfg.llm_noise:
		proposed = await select_noise_llm(client, paragraphs, target_occurrences, target_words, config=cfg)
		if proposed:
			return proposed
	return select_noise_local(paragraphs, target_occurrences, target_words)
