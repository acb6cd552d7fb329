"""maddox - voice assistant proxy server and asyncio voice chat client."""

__version__ = "0.1.0"
__all__ = ["create_app", "ChatSession"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "create_app":
        from .server.app import create_app

        return create_app
    if name == "ChatSession":
        from .client.session import ChatSession

        return ChatSession
    raise AttributeError(f"module 'maddox' has no attribute {name!r}")
