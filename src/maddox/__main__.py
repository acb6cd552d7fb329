"""Entry point for running maddox as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the maddox CLI application."""
    app()


if __name__ == "__main__":
    main()
