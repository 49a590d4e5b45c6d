#!/usr/bin/env python3
"""
Application Startup Script

Checks that the configured message store and the primary provider are
reachable before starting the FastAPI application.

Usage:
    python start_app.py
"""

import asyncio
import sys

import uvicorn

from chatstream.app import build_store
from chatstream.core.config.settings import get_settings
from chatstream.core.exceptions import ChatStreamError
from chatstream.llm_stream.providers import build_gateway


async def preflight(settings) -> bool:
    store = build_store(settings)
    try:
        store_ok = await store.ping()
    finally:
        await store.close()
    print(f"[{'OK' if store_ok else 'X'}] Message store ({settings.STORE_BACKEND})")

    gateway = build_gateway(settings)
    providers = await gateway.health_check()
    for role, healthy in providers.items():
        print(f"[{'OK' if healthy else '!'}] {role} provider")

    # A down fallback only degrades the service.
    return store_ok and providers["primary"]


def main():
    """Start the application after the preflight checks pass."""

    print("=" * 60)
    print("Chat Streaming Service - Startup")
    print("=" * 60)
    print()

    settings = get_settings()

    print("Step 1: Checking dependencies...")
    try:
        ready = asyncio.run(preflight(settings))
    except ChatStreamError as e:
        print(f"\n[X] Invalid configuration: {e.message}")
        sys.exit(1)
    if not ready:
        print("\n[X] Dependencies are not healthy")
        print("Please check Redis and the provider credentials and try again.")
        sys.exit(1)

    print("\nStep 2: Starting FastAPI application...")
    print("=" * 60)
    print()

    try:
        uvicorn.run(
            "chatstream.app:create_app",
            factory=True,
            host=settings.app.API_HOST,
            port=settings.app.API_PORT,
            reload=settings.app.ENVIRONMENT == "development",
            log_level=settings.logging.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        print("\n\n[!] Shutting down gracefully...")
        sys.exit(0)


if __name__ == "__main__":
    main()
