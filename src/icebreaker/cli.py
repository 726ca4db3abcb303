"""
Command-line interface for Icebreaker.

This module provides a terminal front-end for running a facilitated session,
reviewing a stored conversation and checking the runtime configuration.
"""

import asyncio
import argparse
import logging
import sys
from typing import List, Optional

from icebreaker.adapters.base.adapter import AdapterFactory, ModelAdapter
from icebreaker.config import Settings, check_environment, load_settings
from icebreaker.memory.arangodb_store import ArangoDBStore
from icebreaker.memory.base import HistoryStore, PersistenceError
from icebreaker.memory.inmemory import InMemoryStore
from icebreaker.orchestrator.roster import ValidationError
from icebreaker.orchestrator.turn_orchestrator import OrchestratorConfig, TurnOrchestrator
from icebreaker.protocol.message import Message, MessageRole, Participant
from icebreaker.speech.input import SpeechInputError, WhisperSpeechInput
from icebreaker.speech.output import SpeechOutputError, SpeechPlayer
from icebreaker.speech.voicevox import VoicevoxSpeechOutput

QUIT_COMMANDS = ("/quit", "/exit")

logger = logging.getLogger("icebreaker.cli")


class StreamPrinter:
    """Prints a streamed reply incrementally."""

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self._printed = 0

    def reset(self) -> None:
        self._printed = 0

    @property
    def started(self) -> bool:
        return self._printed > 0

    def __call__(self, text: str) -> None:
        if not self.started:
            self.out.write("ずんだもん> ")
        self.out.write(text[self._printed:])
        self.out.flush()
        self._printed = len(text)


def parse_member(value: str) -> Participant:
    """Parse a ``NAME:AFFILIATION`` argument."""
    name, sep, affiliation = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected NAME:AFFILIATION, got {value!r}")
    try:
        return Participant(name=name, affiliation=affiliation)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid member {value!r}: {e}")


def format_message(message: Message) -> str:
    speaker = "facilitator" if message.role == MessageRole.ASSISTANT else "participant"
    return f"[{message.phase.value}] {speaker}: {message.content}"


def open_store(settings: Settings, kind: str) -> HistoryStore:
    """
    Create the history store selected on the command line.

    Raises:
        PersistenceError: If ArangoDB was requested but is not configured
    """
    if kind == "memory":
        return InMemoryStore()

    if not settings.arangodb_configured:
        raise PersistenceError("ArangoDB is not configured (set ARANGODB_HOST, ARANGODB_USERNAME, ARANGODB_PASSWORD)")

    store = ArangoDBStore(
        host=settings.arangodb_host,
        username=settings.arangodb_username,
        password=settings.arangodb_password,
        db_name=settings.arangodb_database
    )
    store.connect()
    return store


async def create_adapter(settings: Settings) -> Optional[ModelAdapter]:
    """Create the configured model adapter, or None without an API key."""
    if not settings.api_key:
        return None

    adapter = await AdapterFactory.create_adapter(settings.provider, settings.adapter_config())
    if not adapter.connection_status.connected:
        print(f"Warning: could not connect to {settings.provider}: {adapter.connection_status.last_error}")
    return adapter


def report_environment(settings: Settings) -> bool:
    status = check_environment(settings)
    for error in status.errors:
        print(f"Error: {error}")
    for warning in status.warnings:
        print(f"Warning: {warning}")
    return status.ok


async def read_typed(prompt: str):
    """Yield lines typed on stdin until end of input."""
    while True:
        try:
            line = await asyncio.to_thread(input, prompt)
        except EOFError:
            return
        yield line


async def read_spoken(speech_input: WhisperSpeechInput):
    async for utterance in speech_input.listen():
        print(f"you> {utterance}")
        yield utterance


async def run_chat(args: argparse.Namespace, settings: Settings) -> int:
    """Run an interactive session."""
    report_environment(settings)

    store_kind = args.store or ("arangodb" if settings.arangodb_configured else "memory")
    try:
        store = open_store(settings, store_kind)
    except PersistenceError as e:
        print(f"Error: {e}")
        return 1

    adapter = await create_adapter(settings)

    voice = None
    speech = None
    if args.speak:
        voice = VoicevoxSpeechOutput(settings.voicevox_url, settings.voicevox_speaker)
        try:
            await voice.check_engine()
        except SpeechOutputError as e:
            print(f"Warning: {e}")
        speech = SpeechPlayer(voice, on_notice=lambda notice: print(f"\n({notice})"))

    printer = StreamPrinter()
    options = dict(
        adapter=adapter,
        speech=speech,
        config=OrchestratorConfig(
            generation=settings.generation,
            generate_opening=settings.generate_opening,
            history_window=settings.history_window
        ),
        on_partial=printer
    )

    try:
        if args.resume:
            orchestrator = await TurnOrchestrator.resume(store, args.resume, **options)
            print(f"Resumed conversation {args.resume} in phase {orchestrator.session.phase.value}")
        else:
            orchestrator = await TurnOrchestrator.create(
                args.member or [], store=store, language=settings.language, **options
            )
    except (ValidationError, LookupError, PersistenceError) as e:
        print(f"Error: {e}")
        return 1

    if orchestrator.session.conversation_id:
        print(f"Conversation {orchestrator.session.conversation_id}")

    def show(message: Optional[Message]) -> None:
        if message is None:
            return
        if printer.started:
            print()
        else:
            print(f"ずんだもん> {message.content}")
        printer.reset()

    show(await orchestrator.start())

    speech_input = None
    if args.listen:
        speech_input = WhisperSpeechInput(
            model_name=settings.whisper_model,
            language=settings.language,
            segment_seconds=settings.whisper_segment_seconds
        )
        utterances = read_spoken(speech_input)
    else:
        utterances = read_typed("you> ")

    try:
        async for text in utterances:
            command = text.strip()
            if command in QUIT_COMMANDS:
                break
            if command == "/stop":
                await orchestrator.stop_speaking()
                continue
            if command == "/status":
                roster = orchestrator.session.roster
                speaker = roster.current_speaker()
                print(
                    f"phase={orchestrator.session.phase.value} state={orchestrator.state.value} "
                    f"speaker={speaker.name if speaker else '-'} ({roster.speaker_index + 1}/{len(roster)})"
                )
                continue

            show(await orchestrator.submit_utterance(text))
    except SpeechInputError as e:
        print(f"Error: {e}")
    finally:
        # Also runs when Ctrl-C cancels the session task
        await orchestrator.stop_speaking()
        await orchestrator.end()
        if voice is not None:
            await voice.close()
        if adapter is not None:
            await adapter.disconnect()

    return 0


async def run_history(args: argparse.Namespace, settings: Settings) -> int:
    """Print a stored conversation."""
    try:
        store = open_store(settings, "arangodb")
        messages = await store.load_history(args.conversation_id)
    except PersistenceError as e:
        print(f"Error: {e}")
        return 1

    if not messages:
        print(f"No messages for conversation {args.conversation_id}")
        return 0

    for message in messages:
        print(format_message(message))
    return 0


def run_check_env(settings: Settings) -> int:
    ok = report_environment(settings)
    print(f"Provider: {settings.provider} ({settings.model or 'default model'})")
    print(f"History store: {'arangodb' if settings.arangodb_configured else 'memory'}")
    if ok:
        print("Environment OK")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Icebreaker facilitator CLI")
    parser.add_argument(
        "--env-file",
        default=".env.local",
        help="Dotenv file to read settings from"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Chat command
    chat_parser = subparsers.add_parser("chat", help="Run a facilitated session")
    chat_parser.add_argument(
        "--member",
        action="append",
        type=parse_member,
        help="Participant as NAME:AFFILIATION, in speaking order (repeatable)"
    )
    chat_parser.add_argument(
        "--provider",
        choices=["gemini", "openai", "anthropic"],
        help="Language model provider (overrides ICEBREAKER_PROVIDER)"
    )
    chat_parser.add_argument(
        "--model",
        help="Model id (overrides ICEBREAKER_MODEL)"
    )
    chat_parser.add_argument(
        "--language",
        choices=["ja", "en"],
        help="Facilitator language (overrides ICEBREAKER_LANGUAGE)"
    )
    chat_parser.add_argument(
        "--store",
        choices=["memory", "arangodb"],
        help="History store, arangodb when configured"
    )
    chat_parser.add_argument(
        "--resume",
        metavar="CONVERSATION_ID",
        help="Continue a stored conversation"
    )
    chat_parser.add_argument(
        "--speak",
        action="store_true",
        help="Read replies aloud with VOICEVOX"
    )
    chat_parser.add_argument(
        "--listen",
        action="store_true",
        help="Take utterances from the microphone"
    )

    # History command
    history_parser = subparsers.add_parser("history", help="Print a stored conversation")
    history_parser.add_argument("conversation_id", help="Conversation to print")

    # Environment check command
    subparsers.add_parser("check-env", help="Check the runtime configuration")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    settings = load_settings(args.env_file)

    if args.command == "check-env":
        return run_check_env(settings)

    if args.command == "history":
        return asyncio.run(run_history(args, settings))

    overrides = {
        key: value
        for key, value in (("provider", args.provider), ("model", args.model), ("language", args.language))
        if value
    }
    if overrides:
        settings = Settings.model_validate({**settings.model_dump(), **overrides})

    if not args.resume and not args.member:
        parser.error("chat requires at least one --member NAME:AFFILIATION")

    try:
        return asyncio.run(run_chat(args, settings))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
