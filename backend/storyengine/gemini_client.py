from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .errors import GenerationUnavailable
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		config: Optional[Settings] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		cfg = config or default_settings
		self.api_key = api_key or cfg.gemini_api_key
		if not self.api_key:
			raise GenerationUnavailable("GEMINI_API_KEY is not configured")
		self.model = model or cfg.gemini_model
		self.provider = cfg.gemini_provider
		if self.provider == "vertex":
			region = cfg.vertex_region
			project = cfg.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		timeout = cfg.generation_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(cfg.openrouter_api_key)
		self._openrouter_api_key = cfg.openrouter_api_key
		self._openrouter_model = cfg.openrouter_model
		self._openrouter_base_url = cfg.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": cfg.openrouter_referer,
			"X-Title": cfg.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc: Any) -> None:
		await self.aclose()

	async def generate(
		self,
		prompt: str,
		*,
		system: Optional[str] = None,
		json_mode: bool = False,
		temperature: Optional[float] = None,
	) -> str:
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		generation_config: Dict[str, Any] = {}
		if temperature is not None:
			generation_config["temperature"] = temperature
		if json_mode:
			generation_config["responseMimeType"] = "application/json"
		if generation_config:
			payload["generationConfig"] = generation_config
		return await self._post_payload(payload, prompt=prompt, system=system, temperature=temperature)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		prompt: str,
		system: Optional[str],
		temperature: Optional[float],
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except Exception:
				last_error = GenerationUnavailable(f"Unexpected Gemini response: {r.text[:500]}")
		if not self._fallback_enabled:
			raise GenerationUnavailable(f"Gemini call failed: {last_error}") from last_error
		logger.warning("Gemini call failed (%s); trying OpenRouter", last_error)
		return await self._fallback_generate(prompt, system, temperature, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(
		self,
		prompt: str,
		system: Optional[str],
		temperature: Optional[float],
		primary_error: Optional[Exception],
	) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise GenerationUnavailable("Fallback requested but OpenRouter is not configured") from primary_error
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		messages: List[Dict[str, str]] = []
		if system:
			messages.append({"role": "system", "content": system})
		messages.append({"role": "user", "content": prompt})
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		if temperature is not None:
			payload["temperature"] = temperature
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			raise GenerationUnavailable(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
