from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Spelling Story Engine", validation_alias="OPENROUTER_TITLE")

	# Story generation
	# Seconds allowed for one generator call; a timeout is handled like a transport failure
	generation_timeout_seconds: float = Field(default=45.0, gt=0, validation_alias="STORY_GENERATION_TIMEOUT")
	# Strict re-prompts after a failed validation before falling back
	max_retries: int = Field(default=1, ge=0, le=1, validation_alias="STORY_MAX_RETRIES")
	story_temperature: float = Field(default=0.8, ge=0, le=2, validation_alias="STORY_TEMPERATURE")
	retry_temperature: float = Field(default=0.2, ge=0, le=2, validation_alias="STORY_RETRY_TEMPERATURE")
	noise_temperature: float = Field(default=0.2, ge=0, le=2, validation_alias="STORY_NOISE_TEMPERATURE")
	default_cefr: str = Field(default="B1", validation_alias="STORY_DEFAULT_CEFR")
	# Ask the generator for noise words before running the local selector
	llm_noise: bool = Field(default=True, validation_alias="STORY_LLM_NOISE")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
