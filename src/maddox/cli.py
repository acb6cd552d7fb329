"""Typer CLI definition for maddox."""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

import httpx
import typer

from .config import CONFIG_PATH, generate_config, load_config

app = typer.Typer(help="Voice assistant proxy server and voice chat client")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool, default_level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else default_level,
        format=LOG_FORMAT,
    )


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (from config if omitted)"),
    port: int | None = typer.Option(None, "-p", "--port", help="Port (from config if omitted)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Run the voice proxy server."""
    import uvicorn

    from .server.app import create_app

    configure_logging(debug, default_level=logging.INFO)
    config = load_config()
    server = replace(
        config.server,
        host=host or config.server.host,
        port=port or config.server.port,
    )
    config = replace(config, server=server)

    typer.echo(f"Serving on http://{server.host}:{server.port}")
    uvicorn.run(
        create_app(config),
        host=server.host,
        port=server.port,
        log_level="debug" if debug else "info",
    )


async def run_talk(server_url: str, muted: bool) -> None:
    """Open a chat session against the server until interrupted."""
    from .audio.player import AudioPlayer
    from .client.api import VoiceApiClient
    from .client.capture import SoundDeviceCapture
    from .client.recognition import LocalRecognizer, RecognitionStrategy, ServerRecognizer
    from .client.recorder import FATAL_ERRORS, VoiceRecorder
    from .client.session import ChatSession
    from .client.voice_service import VoiceClient

    config = load_config()
    async with VoiceApiClient(server_url) as api:
        recorder = VoiceRecorder(
            SoundDeviceCapture(),
            RecognitionStrategy(ServerRecognizer(api), LocalRecognizer()),
        )
        voice = VoiceClient(
            api,
            voice_id=config.voice.voice_id,
            stability=config.voice.stability,
            similarity_boost=config.voice.similarity_boost,
        )
        session = ChatSession(api, voice, recorder, AudioPlayer(), muted=muted)

        last_status = ""
        last_error: str | None = None
        await session.open()
        try:
            while session.is_open:
                if session.status and session.status != last_status:
                    last_status = session.status
                    typer.echo(last_status)
                if session.error and session.error != last_error:
                    typer.echo(f"Error: {session.error}", err=True)
                last_error = session.error
                if session.error in FATAL_ERRORS:
                    break
                await asyncio.sleep(0.1)
        finally:
            await session.shutdown()


@app.command()
def talk(
    server_url: str | None = typer.Option(
        None, "-s", "--server-url", help="Server URL (from config if omitted)"
    ),
    mute: bool = typer.Option(False, "--mute", help="Show responses instead of playing them"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Start a hands-free voice conversation."""
    configure_logging(debug)
    url = server_url or load_config().client.server_url
    typer.echo(f"Talking to {url} (Ctrl+C to quit)")
    try:
        asyncio.run(run_talk(url, mute))
    except KeyboardInterrupt:
        typer.echo("\nGoodbye")


async def run_say(text: str, server_url: str, output: Path | None) -> None:
    from .audio.player import AudioPlayer
    from .client.api import VoiceApiClient
    from .client.voice_service import VoiceClient

    config = load_config()
    async with VoiceApiClient(server_url) as api:
        voice = VoiceClient(
            api,
            voice_id=config.voice.voice_id,
            stability=config.voice.stability,
            similarity_boost=config.voice.similarity_boost,
        )
        result = await voice.text_to_speech(text)
        if not result.success or result.audio is None:
            raise RuntimeError(result.error or "Speech synthesis failed")

        player = AudioPlayer()
        if output is not None:
            player.save_to_file(result.audio, output)
            return
        try:
            await player.play_bytes_async(result.audio)
        finally:
            player.close()


@app.command()
def say(
    text: str = typer.Argument(..., help="Text to speak"),
    server_url: str | None = typer.Option(
        None, "-s", "--server-url", help="Server URL (from config if omitted)"
    ),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save audio to file instead of playing"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose error messages"),
) -> None:
    """Synthesize text through the server and play it."""
    configure_logging(debug)
    if not text.strip():
        typer.echo("Error: Text is required", err=True)
        raise typer.Exit(1)

    url = server_url or load_config().client.server_url
    try:
        asyncio.run(run_say(text, url, output))
    except httpx.HTTPError as e:
        if debug:
            typer.echo(f"Debug - Connection error: {e!r}", err=True)
        else:
            typer.echo(f"Error: Could not reach server at {url}", err=True)
        raise typer.Exit(1) from None
    except OSError as e:
        if debug:
            typer.echo(f"Debug - File system error: {e!r}", err=True)
        else:
            typer.echo(f"Error: Failed to save audio file: {e}", err=True)
        raise typer.Exit(1) from None
    except RuntimeError as e:
        if debug:
            typer.echo(f"Debug - Synthesis or playback error: {e!r}", err=True)
        else:
            typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if output:
        typer.echo(f"Audio saved to {output}")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
) -> None:
    """Write the default config file."""
    if CONFIG_PATH.exists() and not force:
        typer.echo(f"Config already exists at {CONFIG_PATH} (use --force to overwrite)")
        raise typer.Exit(1)
    path = generate_config()
    typer.echo(f"Wrote {path}")
