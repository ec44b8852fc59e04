"""Entry point for running tsumu as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the tsumu CLI application."""
    app()


if __name__ == "__main__":
    main()
