"""
PollutionWatch - Backend Access
Gateway to the managed backend holding report rows and photos.
"""

from src.ingestion.backend_gateway import (
    BackendGateway,
    SupabaseGateway,
    build_image_path,
)

__all__ = [
    "BackendGateway",
    "SupabaseGateway",
    "build_image_path",
]
