import asyncio
import json
from collections import Counter

import httpx
import pytest
from conftest import ScriptedGenerator, doubled_paragraphs, marked_paragraphs, story_json

from storyengine.errors import MalformedInput, StoryEngineError
from storyengine.generator import GenerationState, StoryGenerator, _Run, generate_story, generate_story_pair
from storyengine.validator import validate_story


def _run(generator: StoryGenerator, words, **kwargs):
	return asyncio.run(generator.generate(words, **kwargs))


def _assert_valid(result, words) -> None:
	story = result.story
	assert len(story.paragraphs) == 5
	check = validate_story(words, story.paragraphs, story.target_occurrences)
	assert check.ok, check.violations
	assert Counter(o.word for o in story.target_occurrences) == {w: 5 for w in words}


def test_compliant_story_is_accepted_first_time(config, words) -> None:
	client = ScriptedGenerator(story_json(marked_paragraphs(words)))
	result = _run(StoryGenerator(client, config=config), words, cefr="A2", topic="the sea")
	assert not result.used_fallback
	assert result.attempts == 1
	_assert_valid(result, words)
	assert "**" not in "".join(result.story.paragraphs)
	user_prompt = json.loads(client.calls[0]["prompt"])
	assert user_prompt["targetWords"] == words
	assert user_prompt["topic"] == "the sea"
	assert user_prompt["cefr"] == "A2"
	assert client.calls[0]["json_mode"] is True


def test_noise_is_selected_after_acceptance(config, words) -> None:
	client = ScriptedGenerator(story_json(marked_paragraphs(words)))
	result = _run(StoryGenerator(client, config=config), words)
	story = result.story
	assert len(story.noise_occurrences) == 10
	targets = {o.position for o in story.target_occurrences}
	for n in story.noise_occurrences:
		assert n.position not in targets
		assert n.word.lower() not in words


def test_input_words_are_normalized(config) -> None:
	client = ScriptedGenerator(story_json(marked_paragraphs(["harbor", "meadow"])))
	result = _run(StoryGenerator(client, config=config), [" Harbor", "MEADOW", "harbor"])
	assert not result.used_fallback
	_assert_valid(result, ["harbor", "meadow"])


def test_violation_triggers_one_strict_retry(config, words) -> None:
	client = ScriptedGenerator(
		story_json(doubled_paragraphs(words)),
		story_json(marked_paragraphs(words)),
	)
	result = _run(StoryGenerator(client, config=config), words)
	assert result.attempts == 2
	assert not result.used_fallback
	assert result.violations == []
	_assert_valid(result, words)
	retry_system = client.calls[1]["system"]
	assert "STRICT" in retry_system
	assert 'word "harbor" appears 2 times in paragraph 2' in retry_system
	assert client.calls[1]["temperature"] == config.retry_temperature
	assert client.calls[0]["temperature"] == config.story_temperature


def test_second_failure_falls_back(config, words) -> None:
	client = ScriptedGenerator(
		story_json(doubled_paragraphs(words)),
		story_json(doubled_paragraphs(words)),
		story_json(marked_paragraphs(words)),
	)
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	assert result.attempts == 2
	assert len(client.calls) == 2
	assert any("paragraph 2" in v for v in result.violations)
	_assert_valid(result, words)
	assert result.story.paragraphs[0].startswith("Paragraph 1, sentence 1")


def test_no_retry_when_disabled(config, words) -> None:
	config.max_retries = 0
	client = ScriptedGenerator(story_json(doubled_paragraphs(words)), story_json(marked_paragraphs(words)))
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	assert len(client.calls) == 1


@pytest.mark.parametrize(
	"response",
	[
		httpx.ConnectError("connection refused"),
		RuntimeError("refused"),
		"I'm sorry, I can't help with that.",
		json.dumps({"story": {"paragraphs": []}}),
		json.dumps({"answer": "no story"}),
		"",
	],
)
def test_unusable_output_falls_back(config, words, response) -> None:
	client = ScriptedGenerator(response, story_json(marked_paragraphs(words)))
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	assert result.attempts == 1
	assert len(client.calls) == 1
	_assert_valid(result, words)


def test_story_without_markers_falls_back(config, words) -> None:
	plain = [p.replace("**", "") for p in marked_paragraphs(words)]
	client = ScriptedGenerator(story_json(plain))
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	assert len(client.calls) == 1
	_assert_valid(result, words)


def test_timeout_falls_back(config, words) -> None:
	config.generation_timeout_seconds = 0.05

	async def slow() -> str:
		await asyncio.sleep(1)
		return story_json(marked_paragraphs(words))

	client = ScriptedGenerator(slow)
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	_assert_valid(result, words)


def test_fenced_json_is_accepted(config, words) -> None:
	fenced = "Here you go:\n```json\n" + story_json(marked_paragraphs(words)) + "\n```"
	result = _run(StoryGenerator(ScriptedGenerator(fenced), config=config), words)
	assert not result.used_fallback


def test_without_client_uses_fallback(config, words) -> None:
	result = asyncio.run(generate_story(words, config=config))
	assert result.used_fallback
	assert result.attempts == 0
	_assert_valid(result, words)
	assert result.story.noise_occurrences


def test_from_settings_without_key_has_no_client(config) -> None:
	generator = StoryGenerator.from_settings(config)
	assert generator.client is None


@pytest.mark.parametrize("bad", [[], ["", "  "], ["a", "b", "c", "d", "e", "f"]])
def test_malformed_input_is_rejected(config, bad) -> None:
	with pytest.raises(MalformedInput):
		_run(StoryGenerator(ScriptedGenerator(), config=config), bad)


def test_cancellation_is_not_swallowed(config, words) -> None:
	async def cancelled() -> str:
		raise asyncio.CancelledError()

	client = ScriptedGenerator(cancelled)
	with pytest.raises(asyncio.CancelledError):
		_run(StoryGenerator(client, config=config), words)


def test_story_pair_generation(config) -> None:
	words_a = ["harbor", "meadow"]
	words_b = ["bridge", "lantern"]
	generator = StoryGenerator(None, config=config)
	pair = asyncio.run(generate_story_pair(generator, words_a, words_b))
	_assert_valid(pair.story_a, words_a)
	_assert_valid(pair.story_b, words_b)
	assert pair.cross_story.ok
	schedules = pair.phase_schedule()
	assert set(schedules) == set(words_a + words_b)
	payload = pair.model_dump(by_alias=True)
	assert "storyA" in payload
	assert "paragraphIndex" in payload["storyA"]["story"]["targetOccurrences"][0]


def test_noise_proposal_is_used_when_enabled(config, words) -> None:
	config.llm_noise = True
	proposal = {
		"noiseWords": [
			{"word": w, "paragraphIndex": p} for p in range(5) for w in ("mattered", "expected", "anything")
		]
	}
	client = ScriptedGenerator(story_json(marked_paragraphs(words)), json.dumps(proposal))
	result = _run(StoryGenerator(client, config=config), words)
	assert len(client.calls) == 2
	assert client.calls[1]["temperature"] == config.noise_temperature
	noise = result.story.noise_occurrences
	assert [n.word for n in noise] == ["expected", "anything"] * 5
	assert all(n.sentence_index == 2 for n in noise)


def test_fallback_story_never_asks_for_noise(config, words) -> None:
	config.llm_noise = True
	client = ScriptedGenerator("not json at all")
	result = _run(StoryGenerator(client, config=config), words)
	assert result.used_fallback
	assert len(client.calls) == 1
	assert len(result.story.noise_occurrences) == 10


def test_pair_with_bad_word_list_sends_no_request(config) -> None:
	finished = []

	async def slow() -> str:
		await asyncio.sleep(0.2)
		finished.append("sibling")
		return story_json(marked_paragraphs(["bridge", "lantern"]))

	client = ScriptedGenerator(slow)
	generator = StoryGenerator(client, config=config)

	async def go() -> None:
		with pytest.raises(MalformedInput):
			await generate_story_pair(generator, [], ["bridge", "lantern"])
		await asyncio.sleep(0.4)

	asyncio.run(go())
	assert client.calls == []
	assert finished == []


def test_pair_cancels_sibling_when_one_side_aborts(config) -> None:
	finished = []

	async def cancelled() -> str:
		raise asyncio.CancelledError()

	async def slow() -> str:
		await asyncio.sleep(0.2)
		finished.append("sibling")
		return story_json(marked_paragraphs(["bridge", "lantern"]))

	client = ScriptedGenerator(cancelled, slow)
	generator = StoryGenerator(client, config=config)

	async def go() -> None:
		with pytest.raises(asyncio.CancelledError):
			await generate_story_pair(generator, ["harbor", "meadow"], ["bridge", "lantern"])
		await asyncio.sleep(0.4)

	asyncio.run(go())
	assert len(client.calls) == 2
	assert finished == []


def test_validating_without_parsed_story_is_an_engine_error(config) -> None:
	generator = StoryGenerator(ScriptedGenerator(), config=config)
	run = _Run(["harbor"])
	run.state = GenerationState.VALIDATING
	with pytest.raises(StoryEngineError):
		generator._validate(run)
