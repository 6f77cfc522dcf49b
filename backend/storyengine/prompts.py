from __future__ import annotations
import json
from typing import Optional, Sequence

from .models import OCCURRENCES_PER_WORD, PARAGRAPH_COUNT, Occurrence


def story_system_prompt() -> str:
	return (
		"You are an educational story generator for spelling experiments.\n\n"
		"CONSTRAINTS:\n"
		"- Use EXACTLY the provided targetWords (no variants, no plurals, no synonyms).\n"
		f"- Write EXACTLY {PARAGRAPH_COUNT} paragraphs.\n"
		f"- Each target word must appear EXACTLY {OCCURRENCES_PER_WORD} times (one per paragraph for that word).\n"
		"- NEVER use the same target word twice in the same paragraph.\n"
		"- Do NOT put two different target words in the same sentence.\n"
		"- Each paragraph must have at least as many sentences as the number of targetWords.\n"
		"- Vary the order of target words across paragraphs (do not repeat the same sequence).\n"
		"- MANDATORY: mark EVERY occurrence of a target word with double asterisks: **word**.\n"
		'  Example: "The **harbor** is calm." not "The harbor is calm."\n'
		"- Do not use asterisks for anything else.\n"
		"- The story should remain coherent and natural.\n\n"
		"Return ONLY a JSON object in this shape, no markdown, no commentary:\n"
		f'{{"story": {{"paragraphs": [exactly {PARAGRAPH_COUNT} strings with **word** markers]}}}}\n\n'
		"PRIORITIZE (if you cannot satisfy all constraints):\n"
		f"1. Exactly {OCCURRENCES_PER_WORD} bold-marked occurrences of each target word\n"
		"2. Coherent, readable story\n"
		f"3. Keep {PARAGRAPH_COUNT} paragraphs"
	)


def story_user_prompt(cefr: str, target_words: Sequence[str], topic: Optional[str] = None) -> str:
	payload = {
		"cefr": cefr,
		"targetWords": list(target_words),
		"paragraphs": PARAGRAPH_COUNT,
		"occurrencesPerWord": OCCURRENCES_PER_WORD,
		"minSentencesPerParagraph": len(target_words),
		"instructions": (
			f"Generate a natural story in exactly {PARAGRAPH_COUNT} paragraphs where each target word appears "
			f"EXACTLY {OCCURRENCES_PER_WORD} times total (one per paragraph), marked with **word**. "
			"Do not place the same target word twice in a paragraph. "
			"Do not place two different target words in the same sentence."
		),
	}
	if topic:
		payload["topic"] = topic
	return json.dumps(payload)


def strict_retry_system_prompt(violations: Sequence[str]) -> str:
	lines = [
		story_system_prompt(),
		"",
		"STRICT: your previous answer was rejected. Do not repeat a target word within a paragraph. "
		"Only one target word per sentence. Mark every occurrence with **word**.",
	]
	if violations:
		lines.append("Fix these problems:")
		lines.extend(f"- {v}" for v in violations)
	return "\n".join(lines)


def noise_system_prompt(per_paragraph: int = 2) -> str:
	return (
		f"Pick exactly {per_paragraph} non-target words per paragraph from the provided story. "
		"Do not choose words in the same sentence as target words, and avoid words adjacent to target words. "
		"Only use words that appear in the text. Return JSON only."
	)


def noise_user_prompt(
	paragraphs: Sequence[str],
	target_words: Sequence[str],
	target_occurrences: Sequence[Occurrence] = (),
) -> str:
	return json.dumps(
		{
			"targetWords": list(target_words),
			"paragraphs": list(paragraphs),
			# [paragraphIndex, sentenceIndex] pairs that hold a target word
			"targetSentences": [list(pos) for pos in sorted({o.position for o in target_occurrences})],
			"output": '{ "noiseWords": [ { "word": string, "paragraphIndex": number } ] }',
		}
	)
