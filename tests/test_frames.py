"""Tests for fenced payload extraction."""

import pytest

from skycast.parsing.frames import (
    diagram_placeholder,
    link_radar_urls,
    scan_fences,
    split_frames,
)

WEATHER = '```json_weather\n{"location": "Paris", "current": {"temperature": 20}}\n```'


def test_extracts_weather_and_cleans_text() -> None:
    """The weather block is decoded and removed from the prose."""
    split = split_frames(f"Here is the forecast.\n\n{WEATHER}\n\nEnjoy!")
    assert split.weather == {"location": "Paris", "current": {"temperature": 20}}
    assert split.residual == "Here is the forecast.\n\nEnjoy!"
    assert "```" not in split.residual


def test_no_fences_passes_text_through() -> None:
    """Plain prose is only stripped."""
    split = split_frames("  Just prose.  ")
    assert split.residual == "Just prose."
    assert split.weather is None
    assert split.diagrams == ()


def test_image_and_video_payloads() -> None:
    """Image and video blocks are decoded independently."""
    text = (
        'Sure.\n```json_image\n{"prompt": "a lighthouse", "aspectRatio": "16:9"}\n```\n'
        '```json_video\n{"prompt": "waves"}\n```'
    )
    split = split_frames(text)
    assert split.image == {"prompt": "a lighthouse", "aspectRatio": "16:9"}
    assert split.video == {"prompt": "waves"}
    assert split.residual == "Sure."


def test_diagrams_become_ordered_placeholders() -> None:
    """Each diagram is replaced by a numbered placeholder in order."""
    text = "A\n```mermaid\ngraph TD; A-->B\n```\nB\n```mermaid\nsequenceDiagram\n```\nC\n```mermaid\npie\n```"
    split = split_frames(text)
    assert split.diagrams == ("graph TD; A-->B", "sequenceDiagram", "pie")
    for index in range(3):
        assert split.residual.count(diagram_placeholder(index)) == 1
    assert split.residual.index(diagram_placeholder(0)) < split.residual.index(diagram_placeholder(2))
    assert "mermaid" not in split.residual


def test_malformed_weather_is_dropped_silently() -> None:
    """Undecodable JSON is treated as absent but still removed."""
    split = split_frames('Look:\n```json_weather\n{"location": "Paris",\n```\nDone.')
    assert split.weather is None
    assert "json_weather" not in split.residual
    assert "```" not in split.residual
    assert split.residual == "Look:\n\nDone."


def test_non_object_json_is_rejected() -> None:
    """A JSON array is not a weather payload."""
    assert split_frames("```json_weather\n[1, 2]\n```").weather is None


def test_first_payload_wins_and_repeats_are_removed() -> None:
    """Only the first block of a kind is used; all are removed."""
    text = '```json_weather\n{"location": "Paris"}\n```\nmiddle\n```json_weather\n{"location": "Rome"}\n```'
    split = split_frames(text)
    assert split.weather == {"location": "Paris"}
    assert split.residual == "middle"


def test_unterminated_fence_runs_to_end() -> None:
    """An unclosed fence extends to the end of the text."""
    split = split_frames('Intro\n```json_weather\n{"location": "Paris"}')
    assert split.residual == "Intro"
    assert split.weather == {"location": "Paris"}


def test_other_code_blocks_are_kept() -> None:
    """Unrecognised code fences stay in the prose."""
    text = "Run this:\n```python\nprint('hi')\n```"
    assert split_frames(text).residual == text


def test_blank_runs_collapse() -> None:
    """Blank runs left by removed fences collapse to one blank line."""
    assert split_frames(f"One\n\n\n{WEATHER}\n\n\n\nTwo").residual == "One\n\nTwo"


@pytest.mark.parametrize(
    "text",
    [
        f"Forecast\n{WEATHER}\nmore",
        "plain text",
        "A\n```mermaid\ngraph\n```\nB",
        "Radar: https://weather.example.com/radar/paris.",
        '```json_image\n{"prompt": "x"}\n```\n\n\n\ntail',
        "```json_weather\nnot json",
    ],
)
def test_split_is_idempotent(text: str) -> None:
    """Splitting the residual again changes nothing."""
    once = split_frames(text).residual
    assert split_frames(once).residual == once


# -- Radar links ---------------------------------------------------------------


def test_radar_url_becomes_link() -> None:
    """Bare radar URLs become a labelled link, keeping trailing punctuation."""
    result = link_radar_urls("See https://weather.example.com/radar/paris.")
    assert "[View Local Weather Radar](https://weather.example.com/radar/paris)" in result
    assert result.endswith(".")


def test_existing_markdown_link_untouched() -> None:
    """URLs already inside a link target are left alone."""
    text = "[radar](https://weather.example.com/radar/paris)"
    assert link_radar_urls(text) == text


def test_non_radar_url_untouched() -> None:
    """Only URLs mentioning radar are rewritten."""
    text = "Source: https://example.com/forecast"
    assert link_radar_urls(text) == text


# -- scan_fences ---------------------------------------------------------------


def test_scan_reports_only_known_tags() -> None:
    """The scanner ignores unknown fence tags."""
    text = "```python\nx\n```\n```mermaid\ng\n```"
    fences = scan_fences(text)
    assert [f.tag for f in fences] == ["mermaid"]
    assert fences[0].body == "g"
    assert fences[0].closed


def test_scan_marks_unclosed() -> None:
    """An unclosed fence is reported as such."""
    fences = scan_fences("```json_video\n{}")
    assert len(fences) == 1
    assert not fences[0].closed
