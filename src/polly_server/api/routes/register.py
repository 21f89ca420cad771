"""
Route registration entry point for the FastAPI application.

``register_routes(app, service)`` wires every router module to the shared
dialogue service.
"""

from fastapi import FastAPI

from polly_server.api.routes import dialogue, health
from polly_server.generation import NPCDialogueService


def register_routes(app: FastAPI, service: NPCDialogueService) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router(service))
    app.include_router(dialogue.router(service))
