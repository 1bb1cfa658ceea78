"""
Entry point for running the shopping assistant as a module.

Allows the assistant to be executed with:
    python -m src.pipelines.inference
"""

from .cli import main

if __name__ == "__main__":
    exit(main())
