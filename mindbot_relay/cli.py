"""
Command-line interface tools for the MindBot Relay service.
"""

import asyncio
import json
from collections.abc import Coroutine
from typing import Any

import httpx
import typer

from .models import StoredMood

DEFAULT_BASE_URL = "http://localhost:5000"

app = typer.Typer(help="MindBot Relay CLI tools")


# MARK: - Commands


@app.command()
def chat(
    message: str = typer.Argument(..., help="The message to send"),
    base_url: str = typer.Option(
        DEFAULT_BASE_URL, "--url", "-u", help="Base URL of the MindBot service"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output raw JSON"),
) -> None:
    """Send a chat message and print the reply."""

    async def _chat() -> None:
        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.post(f"{base_url}/chat", json={"message": message})
            response.raise_for_status()
            result = response.json()

            if json_output:
                print(json.dumps(result, indent=2))
                return

            print(result["reply"])
            print(f"[sentiment: {result['sentiment']}]")
            if result["risk"]:
                print(
                    "[risk detected: please reach out to a crisis line "
                    "or a mental health professional]"
                )

    _run_with_error_handling(_chat(), base_url)


@app.command("log-mood")
def log_mood(
    mood: str = typer.Argument(..., help="The mood label to record"),
    base_url: str = typer.Option(
        DEFAULT_BASE_URL, "--url", "-u", help="Base URL of the MindBot service"
    ),
) -> None:
    """Record a mood on the MindBot service."""

    async def _log_mood() -> None:
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{base_url}/mood", json={"mood": mood})
            response.raise_for_status()
            moods = response.json()
            print(f"Mood recorded: {mood} ({len(moods)} entries)")

    _run_with_error_handling(_log_mood(), base_url)


@app.command()
def moods(
    base_url: str = typer.Option(
        DEFAULT_BASE_URL, "--url", "-u", help="Base URL of the MindBot service"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output raw JSON"),
    limit: int | None = typer.Option(
        None, "--limit", "-n", min=1, help="Show at most this many entries"
    ),
) -> None:
    """List recorded moods, most recent first."""

    async def _moods() -> None:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{base_url}/mood")
            response.raise_for_status()
            result = response.json()[:limit]

            if json_output:
                print(json.dumps(result, indent=2))
                return

            if not result:
                print("No moods recorded")
                return
            for raw in result:
                print(format_mood_line(StoredMood.model_validate(raw)))

    _run_with_error_handling(_moods(), base_url)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Interface to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the MindBot Relay HTTP server."""
    from .server import main

    main(host=host, port=port, reload=reload)


# MARK: - Private Helpers


def format_mood_line(mood: StoredMood) -> str:
    """Format a mood entry with its local timestamp."""
    timestamp = mood.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    return f"{timestamp} > {mood.mood}"


def _run_with_error_handling(coro: Coroutine[Any, Any, Any], base_url: str) -> None:
    """Run an async coroutine with standardized error handling."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        print("\nStopped")
        raise typer.Exit(0)
    except httpx.ConnectError:
        print(f"Error: Could not connect to {base_url}")
        raise typer.Exit(1)
    except httpx.HTTPStatusError as e:
        print(f"Error: HTTP {e.response.status_code} {_error_detail(e.response)}")
        raise typer.Exit(1)
    except Exception as e:
        error_msg = str(e) if str(e) else f"Unknown error of type {type(e).__name__}"
        print(f"Error: {error_msg}")
        raise typer.Exit(1)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    return str(payload.get("error", "")) if isinstance(payload, dict) else ""


if __name__ == "__main__":
    app()
