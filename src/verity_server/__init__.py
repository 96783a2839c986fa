"""verity-server: Headless FastAPI server for truthful tool-calling conversations via Ollama.

The server runs conversational turns in which a local model may invoke
file, notes, web and shell tools, one per round, while a per-turn ledger
keeps the model from claiming lookups it never performed.
"""

from verity_server.app import VERSION, create_app

__version__ = VERSION

__all__ = ["create_app", "__version__"]
