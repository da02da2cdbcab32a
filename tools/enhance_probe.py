"""
Manual probe: stream one enhancement against the configured provider.

    API_KEY=... python tools/enhance_probe.py "Good morning team" --tone Witty

Requires the package to be installed (pip install -e .).
"""
import argparse
import asyncio
import sys

from dotenv import load_dotenv

from adapters.llm.errors import PipelineError
from adapters.llm.streaming import StreamingEnhancementAdapter
from config import AppConfig
from orchestrator.enums.credential import CredentialStatus
from orchestrator.enums.tone import Tone
from server.app import build_llm_client
from session.credentials import CredentialSnapshot


async def _ignore_event(_event):
    return None


async def run(text: str, tone: Tone) -> int:
    config = AppConfig.load_from_env()
    snapshot = CredentialSnapshot(
        status=CredentialStatus.CONNECTED if config.preselected_api_key else CredentialStatus.NOT_CONNECTED,
        api_key=config.preselected_api_key,
    )
    adapter = StreamingEnhancementAdapter(
        emit_event=_ignore_event,
        credentials=lambda: snapshot,
        client_factory=lambda key: build_llm_client(config, key),
        model=config.llm_model,
        session_id="probe",
    )

    async def on_chunk(delta: str) -> None:
        print(delta, end="", flush=True)

    try:
        await adapter.stream(text, tone, on_chunk)
    except PipelineError as exc:
        print(f"\n[{exc.kind.value}] {exc.message}", file=sys.stderr)
        return 1
    print()
    return 0


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("text")
    parser.add_argument("--tone", default=Tone.GENERAL.value, choices=[t.value for t in Tone])
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.text, Tone(args.tone))))


if __name__ == "__main__":
    main()
