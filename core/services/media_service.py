# =============================================================================
# core/services/media_service.py - Media Library Lookups
# =============================================================================
# Resolves library image ids stored in image columns.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from app.exceptions import MediaNotFoundError

logger = logging.getLogger(__name__)


class MediaService:
    """Read-only access to the media library."""

    @staticmethod
    def get_by_id(media_id: int) -> dict[str, Any]:
        """
        Get a media record by ID.

        Raises:
            MediaNotFoundError: If the media item has been deleted
        """
        media = SupabaseClient.fetch_media(media_id)

        if not media:
            raise MediaNotFoundError(media_id)

        return media
