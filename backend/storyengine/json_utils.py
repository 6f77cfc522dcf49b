from __future__ import annotations
import json
import re
from typing import Any, Dict, List

from .errors import GenerationUnavailable


def extract_json_object(text: str) -> Dict[str, Any]:
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			return data
	except Exception:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text or "")
	if code_block:
		candidate = code_block.group(1)
		try:
			data = json.loads(candidate)
			if isinstance(data, dict):
				return data
		except Exception:
			pass
	first = (text or "").find("{")
	last = (text or "").rfind("}")
	if first != -1 and last != -1 and last > first:
		candidate = text[first : last + 1]
		try:
			data = json.loads(candidate)
			if isinstance(data, dict):
				return data
		except Exception:
			pass
	raise GenerationUnavailable("Generator did not return a valid JSON object.")


def story_paragraphs(data: Dict[str, Any], limit: int) -> List[str]:
	# Expected shape is {"story": {"paragraphs": [...]}}; a bare "paragraphs" key is tolerated
	story = data.get("story")
	raw = story.get("paragraphs") if isinstance(story, dict) else data.get("paragraphs")
	if not isinstance(raw, list):
		return []
	return [p for p in raw if isinstance(p, str)][:limit]
