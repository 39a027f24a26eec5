"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from ticketing.api.endpoints import auth, events, tickets, users

api_router = APIRouter()

# Register, login, logout, sessions
api_router.include_router(auth.router)

# Admin user management and self-service profile
api_router.include_router(users.router)

# Catalogue and purchase
api_router.include_router(events.router)

api_router.include_router(tickets.router)
