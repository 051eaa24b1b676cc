import asyncio
import logging

from commit_llm.client import CompletionClient
from commit_llm.config import load_settings
from commit_llm.live import LiveSlot
from commit_llm.types import Invocation


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    invocation = Invocation.from_settings(
        settings,
        files=["src/app.py"],
        diff_text="+def greet():\n+    return 'hi'\n",
    )

    status = LiveSlot(on_write=lambda text: print(f"\r[thinking] {text[:40]:<40}", end="", flush=True))
    async with CompletionClient() as client:
        outcome = await client.generate(invocation, status_slot=status)

    print()
    if outcome.ok:
        print(outcome.text)
    else:
        print("Failed:", outcome.failure.kind, outcome.failure.message)


if __name__ == "__main__":
    asyncio.run(main())
