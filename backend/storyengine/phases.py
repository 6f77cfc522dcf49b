from __future__ import annotations
from typing import Dict, List, Sequence, Tuple

from .models import PARAGRAPH_COUNT, Occurrence, Phase, PhasePlacement, PhaseSchedule

# Phases that are shown in the text, in exposure order; recall is tested from memory
EXPOSURE_PHASES: Tuple[Phase, ...] = (Phase.baseline, Phase.learning, Phase.reinforcement)

PHASE_DESCRIPTIONS: Dict[Phase, str] = {
	Phase.baseline: "Prior Knowledge Assessment",
	Phase.learning: "Learning Phase (First Practice)",
	Phase.reinforcement: "Reinforcement Phase (Second Practice)",
	Phase.recall: "Immediate Recall Assessment",
}

HINT_CONDITION = "with-hints"


def schedule_word_phases(
	word: str,
	occurrences: Sequence[Occurrence],
	paragraph_count: int = PARAGRAPH_COUNT,
) -> PhaseSchedule:
	"""Pick distinct-paragraph positions of ``word`` for the three exposure phases.

	Real occurrences are preferred, earliest first. When fewer than three
	paragraphs hold the word, sentence 0 of the first unused paragraphs is
	used as a placeholder. Recall never gets a position.
	"""
	unique = sorted({o.position for o in occurrences})
	picks: List[Tuple[int, int]] = []
	used = set()
	for paragraph, sentence in unique:
		if len(picks) >= len(EXPOSURE_PHASES):
			break
		if paragraph not in used:
			picks.append((paragraph, sentence))
			used.add(paragraph)

	for paragraph in range(max(0, paragraph_count)):
		if len(picks) >= len(EXPOSURE_PHASES):
			break
		if paragraph not in used:
			picks.append((paragraph, 0))
			used.add(paragraph)

	picks.sort()
	schedule: PhaseSchedule = {}
	for i, phase in enumerate(EXPOSURE_PHASES):
		if i < len(picks):
			schedule[phase] = PhasePlacement(phase=phase, paragraph_index=picks[i][0], sentence_index=picks[i][1])
		else:
			schedule[phase] = PhasePlacement(phase=phase)
	schedule[Phase.recall] = PhasePlacement(phase=Phase.recall)
	return schedule


def build_phase_schedule(
	target_words: Sequence[str],
	all_occurrences: Sequence[Occurrence],
	paragraph_count: int = PARAGRAPH_COUNT,
) -> Dict[str, PhaseSchedule]:
	by_word: Dict[str, List[Occurrence]] = {}
	for o in all_occurrences:
		by_word.setdefault(o.word.lower(), []).append(o)
	return {
		word: schedule_word_phases(word, by_word.get(word.lower(), []), paragraph_count)
		for word in target_words
	}


def phase_for_occurrence(occurrence_index: int) -> Phase:
	# Occurrences are numbered per word as the student meets them
	if occurrence_index <= 1:
		return Phase.baseline
	if occurrence_index == 2:
		return Phase.learning
	if occurrence_index == 3:
		return Phase.reinforcement
	return Phase.recall


def phase_description(phase: Phase) -> str:
	return PHASE_DESCRIPTIONS.get(Phase(phase), "")


def should_show_hints(phase: Phase, condition: str) -> bool:
	if condition != HINT_CONDITION:
		return False
	return Phase(phase) in (Phase.learning, Phase.reinforcement)
