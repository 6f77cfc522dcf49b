import logging

import pytest

from storyengine.errors import GenerationUnavailable, MalformedInput
from storyengine.fallback import generate_fallback
from storyengine.json_utils import extract_json_object, story_paragraphs
from storyengine.logs import configure_logging
from storyengine.models import check_target_words, normalize_words
from storyengine.quality import analyze_story_quality


@pytest.mark.parametrize(
	"text",
	[
		'{"story": {"paragraphs": ["a"]}}',
		'```json\n{"story": {"paragraphs": ["a"]}}\n```',
		'Sure! {"story": {"paragraphs": ["a"]}} Enjoy.',
	],
)
def test_json_object_is_found(text) -> None:
	assert story_paragraphs(extract_json_object(text), 5) == ["a"]


@pytest.mark.parametrize("text", ["", "no json here", "[1, 2]", "{broken"])
def test_non_object_output_is_unavailable(text) -> None:
	with pytest.raises(GenerationUnavailable):
		extract_json_object(text)


def test_story_paragraphs_shapes() -> None:
	assert story_paragraphs({"paragraphs": ["a", 3, "b"]}, 5) == ["a", "b"]
	assert story_paragraphs({"story": {"paragraphs": list("abcdefg")}}, 5) == list("abcde")
	assert story_paragraphs({"story": "text"}, 5) == []


def test_word_list_normalization() -> None:
	assert normalize_words([" Harbor ", "harbor", "", "Meadow"]) == ["harbor", "meadow"]
	with pytest.raises(MalformedInput):
		check_target_words([])
	with pytest.raises(ValueError):
		check_target_words(list("abcdef"))


def test_quality_flags_missing_occurrences() -> None:
	story = generate_fallback(["harbor", "meadow"])
	good = analyze_story_quality(story.paragraphs, story.target_occurrences, ["harbor", "meadow"])
	assert good.target_word_distribution == 100
	assert 0 <= good.score <= 100
	bad = analyze_story_quality(story.paragraphs, story.target_occurrences[:-1], ["harbor", "meadow"])
	assert bad.target_word_distribution == 75
	assert bad.score < good.score
	assert any("meadow" in issue or "harbor" in issue for issue in bad.issues)


def test_configure_logging_adds_one_handler() -> None:
	logger = configure_logging("debug")
	configure_logging("debug")
	assert logger.level == logging.DEBUG
	assert sum(1 for h in logger.handlers if h.get_name() == "storyengine") == 1
	configure_logging("warning")
	assert logger.level == logging.WARNING
