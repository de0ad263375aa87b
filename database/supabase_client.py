import logging

from supabase import create_client, Client

from app.core.config import Settings

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """Build the service-role Supabase client.

    The service key bypasses row level security; the client is created once
    per application (see app.main.create_app) and handed to repositories
    through their constructors.
    """
    logger.info(f"Creating Supabase client for {settings.supabase_url}")
    return create_client(
        settings.supabase_url,
        settings.supabase_service_key,
    )
