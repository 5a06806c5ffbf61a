"""
Dev bootstrap script: issue an API key for local development.

Usage:
    python -m scripts.bootstrap_dev [owner_id] [key_name]

This will:
  1. Create a key for `owner_id` (default "dev-user") with the default quota
  2. Print the raw key ONCE

List it later, masked, via GET /api/api-keys with X-User-ID: <owner_id>.
"""

import asyncio
import sys

# Ensure the project root is on the path
sys.path.insert(0, ".")

from app.core.database import async_session_factory, engine
from app.services.key_store import create_key


async def main(owner_id: str, name: str) -> None:
    async with async_session_factory() as session:
        record = await create_key(session, owner_id, name)

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  Owner:      {record.owner_id}")
    print(f"  Key ID:     {record.id}")
    print(f"  Quota:      {record.remaining_uses}/{record.usage_limit}")
    print()
    print(f"  API Key:    {record.secret}")
    print()
    print("  ⚠  Copy this key now, list views only show it masked.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    args = sys.argv[1:]
    asyncio.run(main(
        args[0] if len(args) > 0 else "dev-user",
        args[1] if len(args) > 1 else "Dev Key",
    ))
