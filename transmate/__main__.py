"""
Entry point for running Transmate as a module.

Usage:
    python -m transmate --help
    python -m transmate add-key nav.home "Home" --translate
"""
from .cli import app


if __name__ == "__main__":
    app()
