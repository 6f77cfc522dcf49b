from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from .errors import GenerationUnavailable
from .json_utils import extract_json_object

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
	"""Anything that turns a system/user prompt pair into text."""

	async def generate(
		self,
		prompt: str,
		*,
		system: Optional[str] = None,
		json_mode: bool = False,
		temperature: Optional[float] = None,
	) -> str:
		...


async def request_json(
	client: TextGenerator,
	prompt: str,
	*,
	system: str,
	temperature: Optional[float],
	timeout: float,
) -> Dict[str, Any]:
	"""Call the generator once and return its JSON object.

	Timeouts, transport errors, refusals and unparseable output all surface
	as ``GenerationUnavailable``. Cancellation is not intercepted.
	"""
	try:
		text = await asyncio.wait_for(
			client.generate(prompt, system=system, json_mode=True, temperature=temperature),
			timeout=timeout,
		)
	except asyncio.TimeoutError as err:
		raise GenerationUnavailable(f"Generator timed out after {timeout:g}s") from err
	except GenerationUnavailable:
		raise
	except Exception as err:
		raise GenerationUnavailable(f"Generator call failed: {err}") from err
	if not isinstance(text, str) or not text.strip():
		raise GenerationUnavailable("Generator returned an empty response")
	return extract_json_object(text)
