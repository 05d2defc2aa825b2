#!/usr/bin/env python3
"""Check that the server exposes the expected tools and resources."""

import asyncio
import sys

from searxng_mcp.config import load_config, validate_config
from searxng_mcp.server import create_server

EXPECTED_TOOLS = {"searxng_web_search", "web_url_read"}
EXPECTED_RESOURCES = {"config://server-config", "help://usage-guide"}


async def main() -> int:
    config = load_config()

    issues = validate_config(config)
    if issues:
        print(f"⚠ {issues}")

    async with create_server(config) as server:
        tools = {tool.name for tool in await server.mcp.list_tools()}
        resources = {
            str(resource.uri).rstrip("/") for resource in await server.mcp.list_resources()
        }

    print("Registered tools:")
    print("-" * 60)
    for name in sorted(tools):
        print(f"{'✓' if name in EXPECTED_TOOLS else '✗'} {name}")

    print("\nRegistered resources:")
    print("-" * 60)
    for uri in sorted(resources):
        print(f"{'✓' if uri in EXPECTED_RESOURCES else '✗'} {uri}")

    missing = (EXPECTED_TOOLS - tools) | (EXPECTED_RESOURCES - resources)
    unexpected = (tools - EXPECTED_TOOLS) | (resources - EXPECTED_RESOURCES)

    print("-" * 60)
    if missing or unexpected:
        for name in sorted(missing):
            print(f"❌ missing: {name}")
        for name in sorted(unexpected):
            print(f"❌ unexpected: {name}")
        return 1

    print("✅ SUCCESS: all tools and resources registered")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
