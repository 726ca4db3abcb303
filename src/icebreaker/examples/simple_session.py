"""
Simple Session Example for Icebreaker.

This example runs a short scripted session: two participants introduce
themselves and the facilitator moves on to the icebreaker corner. Replies come
from the configured provider when an API key is set, and the fallback message
is shown otherwise.
"""

import asyncio
import logging

from icebreaker.adapters.base.adapter import AdapterFactory
from icebreaker.config import check_environment, load_settings
from icebreaker.memory.inmemory import InMemoryStore
from icebreaker.orchestrator import OrchestratorConfig, TurnOrchestrator
from icebreaker.protocol.message import Participant

SCRIPT = [
    "はじめまして、東京大学の山田です。",
    "趣味は山登りです。以上です。",
    "京都大学の鈴木です。よろしくお願いします。",
    "最近はパン作りにハマってます。",
]


async def main():
    """Run the scripted example session."""
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()

    status = check_environment(settings)
    for error in status.errors:
        print(f"Warning: {error}")

    adapter = None
    if settings.api_key:
        adapter = await AdapterFactory.create_adapter(settings.provider, settings.adapter_config())

    store = InMemoryStore()
    orchestrator = await TurnOrchestrator.create(
        [
            Participant(name="山田", affiliation="東京大学"),
            Participant(name="鈴木", affiliation="京都大学"),
        ],
        store=store,
        language=settings.language,
        adapter=adapter,
        config=OrchestratorConfig(generation=settings.generation)
    )

    opening = await orchestrator.start()
    print(f"\nずんだもん: {opening.content}\n")

    for utterance in SCRIPT:
        speaker = orchestrator.session.roster.current_speaker()
        print(f"{speaker.name if speaker else '参加者'}: {utterance}")
        reply = await orchestrator.submit_utterance(utterance)
        print(f"ずんだもん: {reply.content}")
        print(f"  (phase: {orchestrator.session.phase.value})\n")

    await orchestrator.end()

    history = await store.load_history(orchestrator.session.conversation_id)
    print(f"Stored {len(history)} messages for conversation {orchestrator.session.conversation_id}")


if __name__ == "__main__":
    asyncio.run(main())
