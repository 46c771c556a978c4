"""
Main API router.
"""

from fastapi import APIRouter
from outlay.api import commitments, merchants

api_router = APIRouter()

api_router.include_router(commitments.router)
api_router.include_router(merchants.router)
