"""Skycast entry point: an interactive terminal chat."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING

from skycast.app import build_app
from skycast.chat.backdrop import describe_backdrop
from skycast.chat.models import Attachment
from skycast.config import settings
from skycast.errors import SkycastError
from skycast.llm.models import TIERS, friendly, resolve_tier

if TYPE_CHECKING:
    from skycast.app import App
    from skycast.chat.models import Message

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)

HELP = """\
Commands:
  /new [fast|advanced]   start a new chat
  /sessions              list chats
  /open <n>              switch to chat n
  /delete <n>            delete chat n
  /status                show the current chat and settings
  /units metric|imperial
  /model fast|advanced   default tier for new chats
  /voice                 toggle listening (type lines, empty line ends)
  /conversational on|off
  /play [n]              read a reply aloud (default: the last one)
  /dismiss               hide the alerts of the last reply
  /attach <path> <text>  send an image with your message
  /places [prefix]       recent locations
  /background [prompt]   generate a custom backdrop (from the saved prompt if none)
  /background reset      back to the weather backdrop
  /theme diamond|sky
  /size 1K|2K|4K         detail of generated backdrops
  /quit
"""


def render(app: App, message: Message) -> str:
    """Plain-text rendering of a finished assistant message."""
    lines = [message.content] if message.content else []
    if message.current is not None:
        c = message.current
        temp = "?" if c.temperature is None else f"{c.temperature:.0f}°"
        where = message.location or "Here"
        lines.append(f"[{where}: {temp} {c.condition or ''}]".replace(" ]", "]"))
    for alert in app.voice.visible_alerts(message.alerts):
        lines.append(f"! {alert.severity}: {alert.title}")
    if message.daily:
        lines.append(f"({len(message.daily)}-day forecast attached)")
    for citation in message.citations:
        lines.append(f"  source: {citation.title} <{citation.uri}>")
    if message.image_request is not None:
        lines.append("(generating image...)")
    if message.video_request is not None:
        lines.append("(generating video...)")
    return "\n".join(lines)


def _last_reply(app: App) -> Message | None:
    session = app.store.current
    if session is None:
        return None
    for message in reversed(session.messages):
        if message.role == "assistant":
            return message
    return None


def _replies(app: App) -> list[Message]:
    session = app.store.current
    return [m for m in session.messages if m.role == "assistant"] if session else []


def _session_at(app: App, arg: str) -> str | None:
    try:
        return app.store.sessions[int(arg) - 1].id
    except (ValueError, IndexError):
        print(f"No chat #{arg}")
        return None


def _status(app: App) -> str:
    session = app.store.current
    prefs = app.store.preferences
    lines = []
    if session is not None:
        model = resolve_tier(session.model).model
        lines.append(f"Chat: {session.title} ({len(session.messages)} messages)")
        lines.append(f"Model: {friendly(model)} ({model})")
        lines.append(f"Backdrop: {describe_backdrop(session, prefs)}")
    lines.append(f"Units: {prefs.units}  Voice: {prefs.voice}  Default tier: {prefs.default_model}")
    lines.append(f"Conversational: {'on' if prefs.conversational_mode else 'off'}  Listening: {app.voice.state.value}")
    if app.orchestrator.location is not None:
        lines.append(f"Location: {app.orchestrator.location.label or 'unknown'}")
    return "\n".join(lines)


def _attachment(path: str) -> Attachment:
    file = Path(path).expanduser()
    mime_type = mimetypes.guess_type(file.name)[0] or "image/png"
    return Attachment(mime_type=mime_type, data=base64.b64encode(file.read_bytes()).decode())


async def _await_reply(app: App, task: asyncio.Task | None) -> None:
    if task is not None:
        await task
    else:
        # Voice submissions start their own turn; wait for it to settle.
        await asyncio.sleep(0)
        while app.orchestrator.is_streaming():
            await asyncio.sleep(0.1)
    reply = _last_reply(app)
    if reply is not None and not reply.is_streaming:
        print(f"\n{render(app, reply)}\n")


async def handle_command(app: App, line: str) -> bool:
    """Run one slash command. Returns False when the shell should exit."""
    name, _, arg = line[1:].partition(" ")
    arg = arg.strip()
    orchestrator = app.orchestrator
    store = app.store

    if name in ("quit", "exit"):
        return False
    if name == "help":
        print(HELP)
    elif name == "new":
        session = orchestrator.new_session(arg if arg in TIERS else None)
        print(f"Started a new {session.model} chat.")
    elif name == "sessions":
        for index, session in enumerate(store.sessions, start=1):
            marker = "*" if session.id == store.current_session_id else " "
            print(f"{marker} {index}. {session.title} [{session.model}]")
    elif name == "open":
        session_id = _session_at(app, arg)
        if session_id:
            print(f"Opened: {orchestrator.select_session(session_id).title}")
    elif name == "delete":
        session_id = _session_at(app, arg)
        if session_id and orchestrator.delete_session(session_id):
            print("Deleted.")
    elif name == "status":
        print(_status(app))
    elif name == "units" and arg in ("metric", "imperial"):
        store.update_preferences(units=arg)
        print(f"Units set to {arg} (applies to new replies).")
    elif name == "model" and arg in TIERS:
        store.update_preferences(default_model=arg)
        print(f"New chats will use the {arg} tier.")
    elif name == "voice":
        state = app.voice.toggle()
        print(f"Voice: {state.value}")
    elif name == "conversational" and arg in ("on", "off"):
        app.voice.set_conversational_mode(arg == "on")
        print(f"Conversational mode {arg}.")
    elif name == "play":
        replies = _replies(app)
        try:
            target = replies[int(arg) - 1] if arg else replies[-1]
        except (ValueError, IndexError):
            print("Nothing to play.")
        else:
            task = orchestrator.play_message(target.id)
            if task is None or not await task:
                print("Could not play that reply.")
    elif name == "dismiss":
        reply = _last_reply(app)
        if reply is not None:
            app.voice.dismiss_alerts(reply.alerts)
    elif name == "attach":
        path, _, text = arg.partition(" ")
        try:
            attachment = _attachment(path)
        except OSError as exc:
            print(f"Cannot read {path}: {exc}")
        else:
            await _await_reply(app, orchestrator.submit(text, attachment))
    elif name == "places":
        names = store.locations.suggest(arg) if arg else store.locations.entries
        print(", ".join(names) or "No places yet.")
    elif name == "background":
        if arg == "reset":
            app.backgrounds.reset()
            print("Backdrop follows the weather again.")
        else:
            print("Generating backdrop...")
            error = await app.backgrounds.generate(arg or None)
            print(error or "Custom backdrop set.")
    elif name == "theme" and arg in ("diamond", "sky"):
        store.update_preferences(theme=arg)
        print(f"Theme set to {arg}.")
    elif name == "size" and arg in ("1K", "2K", "4K"):
        store.update_preferences(image_size=arg)
        print(f"Backdrops will be generated at {arg}.")
    else:
        print(HELP)
    return True


async def run_shell(app: App) -> None:
    print("Skycast. Type a question, or /help.")
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break

        if app.capture.running:
            app.capture.feed(line)
            if not app.capture.running:
                await _await_reply(app, None)
            continue
        if not line.strip():
            continue

        if line.startswith("/"):
            try:
                if not await handle_command(app, line.strip()):
                    break
            except SkycastError as exc:
                print(exc)
            continue

        task = app.orchestrator.submit(line)
        if task is None:
            print("(busy, try again when the reply finishes)")
            continue
        await _await_reply(app, task)


async def _main() -> None:
    app = await build_app()
    try:
        await run_shell(app)
    finally:
        await app.close()


def main() -> None:
    """Start the terminal chat."""
    logger.info("Starting Skycast with %s / %s", settings.fast_model, settings.advanced_model)
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
