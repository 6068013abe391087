"""Tests for the voice loop controller and typed capture engine."""

from __future__ import annotations

import asyncio

import pytest

from skycast.parsing.payloads import WeatherAlert
from skycast.voice.capture import InputBuffer, TypedCapture
from skycast.voice.loop import VoiceLoopController, VoiceState


@pytest.fixture
def voice(orchestrator, capture) -> VoiceLoopController:
    return VoiceLoopController(orchestrator, capture)


def test_wires_itself_in(voice, orchestrator, capture) -> None:
    """The controller registers with the orchestrator, audio and capture engine."""
    assert orchestrator.voice is voice
    assert orchestrator.audio.voice is voice
    assert capture.on_end == voice.on_capture_end


def test_toggle_on_and_off(voice, orchestrator, capture) -> None:
    """Toggling starts listening with a clean input, then stops it."""
    orchestrator.input.append("stale text")
    assert voice.toggle() is VoiceState.LISTENING
    assert capture.starts == 1
    assert orchestrator.auto_play_next
    assert not orchestrator.input

    assert voice.toggle() is VoiceState.OFF
    assert capture.stops == 1


def test_capture_start_failure_is_logged(voice, capture) -> None:
    """A capture engine that fails to start does not break the toggle."""
    capture.start_error = RuntimeError("mic busy")
    assert voice.toggle() is VoiceState.LISTENING


def test_capture_error_turns_off(voice) -> None:
    """A capture error ends listening."""
    voice.toggle()
    voice.on_capture_error("no-speech")
    assert voice.state is VoiceState.OFF


def test_end_ignored_unless_listening(voice, orchestrator, capture) -> None:
    """End of speech does nothing while the loop is off."""
    orchestrator.input.append("hello")
    capture.on_end()
    assert voice.state is VoiceState.OFF
    assert orchestrator.store.sessions == []


# -- Single-shot ---------------------------------------------------------------


async def test_single_shot_submits_and_stops(voice, orchestrator, capture, model_stream, settle) -> None:
    """One utterance is submitted and listening stops."""
    model_stream.reply("Sunny.")
    voice.toggle()
    capture.say("weather today")

    assert voice.state is VoiceState.OFF
    await settle()
    session = orchestrator.store.current
    assert session.messages[0].content == "weather today"
    assert session.messages[1].content == "Sunny."


async def test_single_shot_autoplays_reply(voice, capture, model_stream, synthesizer, settle) -> None:
    """A spoken question gets a spoken answer."""
    model_stream.reply("Sunny.")
    voice.toggle()
    capture.say("weather today")
    await settle()
    assert synthesizer.calls == [("Sunny.", "alloy")]


def test_single_shot_without_speech(voice, orchestrator, capture) -> None:
    """Silence submits nothing."""
    voice.toggle()
    capture.on_end()
    assert voice.state is VoiceState.OFF
    assert orchestrator.store.sessions == []


# -- Conversational ------------------------------------------------------------


async def test_conversational_cycle(voice, orchestrator, capture, model_stream, audio_output, settle) -> None:
    """Conversational mode listens again once the spoken reply ends."""
    voice.set_conversational_mode(True)
    model_stream.reply("Breezy.")
    voice.toggle()
    capture.say("how windy is it")

    assert voice.state is VoiceState.IDLE
    await settle()
    # Reply is being spoken; capture stays paused
    assert voice.state is VoiceState.IDLE
    assert capture.starts == 1

    orchestrator.input.append("leftover")
    audio_output.finish()

    assert voice.state is VoiceState.LISTENING
    assert capture.starts == 2
    assert not orchestrator.input


def test_conversational_silence_restarts_capture(voice, capture) -> None:
    """Silence in conversational mode just listens again."""
    voice.set_conversational_mode(True)
    voice.toggle()
    capture.on_end()
    assert voice.state is VoiceState.LISTENING
    assert capture.starts == 2


async def test_conversational_end_while_streaming_goes_idle(voice, orchestrator, capture, model_stream, settle) -> None:
    """Speech ending while a turn streams leaves the loop idle."""
    voice.set_conversational_mode(True)
    model_stream.gate = asyncio.Event()
    model_stream.reply("ok")
    task = orchestrator.submit("typed question")

    voice.state = VoiceState.LISTENING
    capture.on_end()
    assert voice.state is VoiceState.IDLE

    model_stream.gate.set()
    await task
    await settle()


def test_turning_conversational_off_stops(voice, capture) -> None:
    """Leaving conversational mode stops listening."""
    voice.set_conversational_mode(True)
    voice.toggle()
    voice.set_conversational_mode(False)
    assert voice.state is VoiceState.OFF
    assert capture.stops == 1


def test_rejected_submission_rearms(voice, orchestrator, capture) -> None:
    """A rejected submission in conversational mode listens again."""
    voice.set_conversational_mode(True)
    voice.toggle()
    voice.state = VoiceState.IDLE
    assert orchestrator.submit("  ") is None
    assert voice.state is VoiceState.LISTENING
    assert capture.starts == 2


def test_resume_requires_active_loop(voice, capture) -> None:
    """Resuming capture does nothing while the loop is off."""
    voice.set_conversational_mode(True)
    voice.resume_capture()
    assert voice.state is VoiceState.OFF
    assert capture.starts == 0


# -- Session switches and alerts -----------------------------------------------


def test_session_switch_resets_voice_and_alerts(voice, orchestrator, capture) -> None:
    """A session switch stops listening and forgets dismissed alerts."""
    orchestrator.store.create_session()
    voice.toggle()
    voice.dismiss_alert("Heat")

    orchestrator.new_session()

    assert voice.state is VoiceState.OFF
    assert voice.dismissed_alerts == set()


def test_visible_alerts(voice) -> None:
    """Dismissed alerts are filtered out."""
    heat = WeatherAlert(title="Heat", severity="Warning")
    wind = WeatherAlert(title="Wind", severity="Advisory")

    voice.dismiss_alerts([heat])
    assert voice.visible_alerts([heat, wind]) == [wind]


# -- Typed capture -------------------------------------------------------------


def test_typed_capture_feeds_and_ends() -> None:
    """Typed lines are transcripts and an empty line ends the utterance."""
    engine = TypedCapture()
    heard: list[str] = []
    ended: list[bool] = []
    engine.on_transcript = heard.append
    engine.on_end = lambda: ended.append(True)

    engine.feed("ignored before start")
    engine.start()
    engine.feed("hello")
    engine.feed("")

    assert heard == ["hello"]
    assert ended == [True]
    assert not engine.running


def test_typed_capture_double_start_raises() -> None:
    """Starting a running capture raises."""
    engine = TypedCapture()
    engine.start()
    with pytest.raises(RuntimeError):
        engine.start()


def test_input_buffer() -> None:
    """Transcripts are joined with single spaces and taken once."""
    buffer = InputBuffer()
    buffer.append("hello")
    buffer.append(" world ")
    assert buffer.text == "hello world"
    assert buffer.take() == "hello world"
    assert not buffer
