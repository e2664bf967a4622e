# tests/conftest.py
import asyncio
import sys

# asyncpg and pytest-asyncio need the selector loop on Windows.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
