"""HTTP surface of the Polly NPC dialogue server (FastAPI)."""
