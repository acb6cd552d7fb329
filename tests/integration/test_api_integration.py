"""Integration tests for the voice API - protecting envelope and routing invariants."""

import sys
from pathlib import Path

import httpx
import pytest

# Add src and tests to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from maddox.config import MaddoxConfig
from maddox.conversation import SYSTEM_PROMPT
from maddox.errors import ProviderAPIError
from maddox.server.app import create_app
from test_helpers import (
    MP3_BYTES,
    FakeChat,
    FakeSynthesizer,
    FakeTranscriber,
    make_services,
)

WAV_UPLOAD = b"RIFF" + bytes(4000)


def client_for(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestTranscribeRoute:
    @pytest.mark.asyncio
    async def test_transcribe_returns_transcript(self, cache_dir: Path) -> None:
        """
        INVARIANT: A valid upload returns {success: true, transcript}
        BREAKS: Client never receives the recognized text
        """
        transcriber = FakeTranscriber("What is the weather")
        app = create_app(services=make_services(cache_dir, transcriber=transcriber))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/transcribe",
                files={"audio": ("recording.wav", WAV_UPLOAD, "audio/wav")},
            )

        assert response.status_code == 200
        assert response.json() == {"success": True, "transcript": "What is the weather"}
        assert transcriber.calls == [(len(WAV_UPLOAD), "audio/wav")]

    @pytest.mark.asyncio
    async def test_missing_upload_is_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post("/api/voice/transcribe", data={"other": "x"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "No audio file uploaded"}

    @pytest.mark.asyncio
    async def test_tiny_upload_is_400_without_provider_call(self, cache_dir: Path) -> None:
        """
        INVARIANT: Uploads under 1000 bytes are rejected before recognition
        BREAKS: Silent clips cost a recognition call each
        """
        transcriber = FakeTranscriber()
        app = create_app(services=make_services(cache_dir, transcriber=transcriber))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/transcribe",
                files={"audio": ("recording.wav", bytes(999), "audio/wav")},
            )

        assert response.status_code == 400
        assert response.json()["message"] == "Audio file too small, likely contains no speech"
        assert transcriber.calls == []

    @pytest.mark.asyncio
    async def test_oversized_upload_is_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/transcribe",
                files={"audio": ("big.wav", bytes(5 * 1024 * 1024 + 1), "audio/wav")},
            )

        assert response.status_code == 400
        assert response.json()["message"] == "Audio file exceeds the 5MB upload limit"

    @pytest.mark.asyncio
    async def test_no_speech_is_422(self, cache_dir: Path) -> None:
        """
        INVARIANT: Zero recognition results map to 422
        BREAKS: Client cannot tell silence from server failure
        """
        app = create_app(services=make_services(cache_dir, transcriber=FakeTranscriber("")))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/transcribe",
                files={"audio": ("recording.wav", WAV_UPLOAD, "audio/wav")},
            )

        assert response.status_code == 422
        assert response.json() == {
            "success": False,
            "message": "No speech detected in the audio",
        }


class TestChatRoute:
    @pytest.mark.asyncio
    async def test_chat_without_history(self, cache_dir: Path) -> None:
        chat = FakeChat("Hello!")
        app = create_app(services=make_services(cache_dir, chat=chat))

        async with client_for(app) as client:
            response = await client.post("/api/voice/chat", json={"message": "Hi"})

        assert response.json() == {"success": True, "response": "Hello!"}
        assert chat.calls == [
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": "Hi"},
            ]
        ]

    @pytest.mark.asyncio
    async def test_chat_history_truncated_to_ten(self, cache_dir: Path) -> None:
        """
        INVARIANT: At most ten messages reach the completion service
        BREAKS: Long conversations grow prompt cost without bound
        """
        chat = FakeChat()
        app = create_app(services=make_services(cache_dir, chat=chat))
        roles = ("user", "assistant")
        history = [{"role": roles[i % 2], "content": f"turn {i}"} for i in range(31)]

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/chat", json={"message": "turn 30", "history": history}
            )

        assert response.status_code == 200
        sent = chat.calls[0]
        assert len(sent) <= 10
        assert sent[0]["role"] == "system"
        assert sent[-1] == {"role": "user", "content": "turn 30"}

    @pytest.mark.asyncio
    async def test_missing_message_is_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post("/api/voice/chat", json={})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Message is required for chat"}

    @pytest.mark.asyncio
    async def test_unconfigured_chat_is_500(self, cache_dir: Path) -> None:
        from maddox.providers import OpenAIChatResponder

        app = create_app(services=make_services(cache_dir, chat=OpenAIChatResponder()))

        async with client_for(app) as client:
            response = await client.post("/api/voice/chat", json={"message": "Hi"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "OpenAI API Key is not configured",
        }

    @pytest.mark.asyncio
    async def test_malformed_history_is_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/chat",
                json={"message": "Hi", "history": [{"role": "robot", "content": "x"}]},
            )

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestSynthesizeRoute:
    @pytest.mark.asyncio
    async def test_repeat_synthesis_served_from_cache(self, cache_dir: Path) -> None:
        """
        INVARIANT: Identical text yields the same URL and one provider call
        BREAKS: Every repeat costs a synthesis call
        """
        synthesizer = FakeSynthesizer()
        app = create_app(services=make_services(cache_dir, synthesizer=synthesizer))

        async with client_for(app) as client:
            first = await client.post("/api/voice/synthesize", json={"text": "Hello there"})
            second = await client.post("/api/voice/synthesize", json={"text": "Hello there"})

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert first.json()["audioUrl"] == second.json()["audioUrl"]
        assert first.json()["audioUrl"].startswith("/api/voice/audio/")
        assert len(synthesizer.calls) == 1

    @pytest.mark.asyncio
    async def test_voice_settings_forwarded(self, cache_dir: Path) -> None:
        synthesizer = FakeSynthesizer()
        app = create_app(services=make_services(cache_dir, synthesizer=synthesizer))

        async with client_for(app) as client:
            await client.post(
                "/api/voice/synthesize",
                json={"text": "A", "voiceId": "v2", "stability": 0.3, "similarity_boost": 0.6},
            )
            await client.post("/api/voice/synthesize", json={"text": "B"})

        assert synthesizer.calls == [
            {"text": "A", "voice_id": "v2", "stability": 0.3, "similarity_boost": 0.6},
            {"text": "B", "voice_id": "test-voice", "stability": 0.5, "similarity_boost": 0.75},
        ]

    @pytest.mark.asyncio
    async def test_missing_text_is_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post("/api/voice/synthesize", json={"text": ""})

        assert response.status_code == 400
        assert response.json()["message"] == "Text is required for speech synthesis"

    @pytest.mark.asyncio
    async def test_out_of_range_settings_are_400(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.post(
                "/api/voice/synthesize", json={"text": "Hi", "stability": 2}
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_provider_audio_not_cached(self, cache_dir: Path) -> None:
        class EmptySynthesizer(FakeSynthesizer):
            async def synthesize(self, text, voice_id, stability=0.5, similarity_boost=0.75):
                raise ProviderAPIError("Received empty audio data from voice service")

        app = create_app(services=make_services(cache_dir, synthesizer=EmptySynthesizer()))

        async with client_for(app) as client:
            response = await client.post("/api/voice/synthesize", json={"text": "Hi"})

        assert response.status_code == 500
        assert response.json()["message"] == "Received empty audio data from voice service"
        assert list(cache_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_provider_error_details_reported(self, cache_dir: Path) -> None:
        class RateLimitedSynthesizer(FakeSynthesizer):
            async def synthesize(self, text, voice_id, stability=0.5, similarity_boost=0.75):
                raise ProviderAPIError(
                    "Error calling voice service API", 429, detail="Rate limit exceeded"
                )

        app = create_app(
            services=make_services(cache_dir, synthesizer=RateLimitedSynthesizer())
        )

        async with client_for(app) as client:
            response = await client.post("/api/voice/synthesize", json={"text": "Hi"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Error calling voice service API",
            "error": "Rate limit exceeded",
            "statusCode": 429,
        }

    @pytest.mark.asyncio
    async def test_missing_key_fails_only_on_cache_miss(self, cache_dir: Path) -> None:
        """
        INVARIANT: Without an ElevenLabs key, cached text still returns 200 and a miss is 500
        BREAKS: A keyless server stops serving audio it already has
        """
        from maddox.providers import ElevenLabsSynthesizer

        warm = create_app(services=make_services(cache_dir))
        async with client_for(warm) as client:
            cached = await client.post("/api/voice/synthesize", json={"text": "Hello there"})

        keyless = ElevenLabsSynthesizer(api_key=None)
        app = create_app(services=make_services(cache_dir, synthesizer=keyless))
        async with client_for(app) as client:
            hit = await client.post("/api/voice/synthesize", json={"text": "Hello there"})
            miss = await client.post("/api/voice/synthesize", json={"text": "Something new"})

        assert hit.status_code == 200
        assert hit.json()["audioUrl"] == cached.json()["audioUrl"]
        assert miss.status_code == 500
        assert miss.json() == {
            "success": False,
            "message": "ElevenLabs API Key is not configured",
        }
        assert len(list(cache_dir.glob("*.mp3"))) == 1


class TestAudioRoute:
    async def _synthesize(self, client: httpx.AsyncClient) -> str:
        response = await client.post("/api/voice/synthesize", json={"text": "Hello there"})
        return response.json()["audioUrl"]

    @pytest.mark.asyncio
    async def test_serves_cached_file_with_headers(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            url = await self._synthesize(client)
            response = await client.get(url)

        assert response.status_code == 200
        assert response.content == MP3_BYTES
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.headers["content-disposition"] == "inline"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["cache-control"] == "public, max-age=86400"

    @pytest.mark.asyncio
    async def test_range_request_returns_partial_content(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            url = await self._synthesize(client)
            response = await client.get(url, headers={"Range": "bytes=0-9"})

        assert response.status_code == 206
        assert response.content == MP3_BYTES[:10]
        assert response.headers["content-range"] == f"bytes 0-9/{len(MP3_BYTES)}"

    @pytest.mark.asyncio
    async def test_unsatisfiable_range_is_416(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            url = await self._synthesize(client)
            response = await client.get(url, headers={"Range": "bytes=99999-"})

        assert response.status_code == 416
        assert response.headers["content-range"] == f"bytes */{len(MP3_BYTES)}"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        [
            "/api/voice/audio/..%2F..%2Fsecret.txt",
            "/api/voice/audio/..%5C..%5Csecret.txt",
            "/api/voice/audio/nested/..%2F..%2Fsecret.txt",
            "/api/voice/audio/missing.mp3",
        ],
    )
    async def test_traversal_and_missing_files_are_404(
        self, cache_dir: Path, tmp_path: Path, path: str
    ) -> None:
        """
        INVARIANT: Only files inside the cache directory are ever served
        BREAKS: Arbitrary file read through the audio route
        """
        (tmp_path / "secret.txt").write_text("secret")
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.get(path)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Audio file not found"}


class TestAppSurface:
    @pytest.mark.asyncio
    async def test_legacy_routes_redirect(self, cache_dir: Path) -> None:
        """
        INVARIANT: Legacy endpoints answer 307 to their replacements
        BREAKS: Old clients lose access instead of following the redirect
        """
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            query = await client.post("/api/maddox-query", json={"text": "Hi"})
            audio = await client.get("/api/audio/abc.mp3")

        assert query.status_code == 307
        assert query.headers["location"] == "/api/voice/synthesize"
        assert audio.status_code == 307
        assert audio.headers["location"] == "/api/voice/audio/abc.mp3"

    @pytest.mark.asyncio
    async def test_health_reports_providers(self, cache_dir: Path) -> None:
        app = create_app(services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.get("/api/voice/health")

        assert response.json() == {
            "success": True,
            "providers": {"speech": True, "chat": True, "synthesis": True},
        }

    @pytest.mark.asyncio
    async def test_default_app_reads_credentials_from_environment(
        self, monkeypatch, tmp_path: Path
    ) -> None:
        """
        INVARIANT: create_app() with no arguments picks up provider secrets from the environment
        BREAKS: An app started through the factory reports every provider missing
        """
        credentials = tmp_path / "service-account.json"
        credentials.write_text("{}")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("ELEVEN_LABS_API_KEY", "el-test")
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(credentials))

        app = create_app()
        async with client_for(app) as client:
            response = await client.get("/api/voice/health")

        assert response.json() == {
            "success": True,
            "providers": {"speech": True, "chat": True, "synthesis": True},
        }

    @pytest.mark.asyncio
    async def test_cors_preflight_for_configured_origin(self, cache_dir: Path) -> None:
        from dataclasses import replace

        config = MaddoxConfig()
        config = replace(
            config, server=replace(config.server, cors_origins=("http://localhost:5173",))
        )
        app = create_app(config=config, services=make_services(cache_dir))

        async with client_for(app) as client:
            response = await client.options(
                "/api/voice/chat",
                headers={
                    "Origin": "http://localhost:5173",
                    "Access-Control-Request-Method": "POST",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
