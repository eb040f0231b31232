"""
Configuration settings for the Guesty housekeeping sync system.
"""
import os
from typing import List
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class GuestyConfig:
    """Guesty open API credentials and client tuning."""
    client_id: str = os.getenv("GUESTY_CLIENT_ID", "")
    client_secret: str = os.getenv("GUESTY_CLIENT_SECRET", "")
    api_url: str = os.getenv("GUESTY_API_URL", "https://open-api.guesty.com/v1")
    token_url: str = os.getenv("GUESTY_TOKEN_URL", "https://open-api.guesty.com/oauth2/token")
    webhook_secret: str = os.getenv("GUESTY_WEBHOOK_SECRET", "")
    token_safety_margin_seconds: int = int(os.getenv("GUESTY_TOKEN_SAFETY_MARGIN_SECONDS", "300"))
    page_size: int = int(os.getenv("GUESTY_PAGE_SIZE", "100"))
    timeout_seconds: float = float(os.getenv("GUESTY_TIMEOUT_SECONDS", "30"))

    def missing_credentials(self) -> List[str]:
        """Names of the required environment values that are not set."""
        missing = []
        if not self.client_id:
            missing.append("GUESTY_CLIENT_ID")
        if not self.client_secret:
            missing.append("GUESTY_CLIENT_SECRET")
        return missing


@dataclass
class SupabaseConfig:
    """Supabase configuration settings."""
    url: str = os.getenv("SUPABASE_URL", "")
    anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    def get_auth_key(self) -> str:
        """Prefer service role key for server-side operations when available."""
        return self.service_role_key or self.anon_key


@dataclass
class AppConfig:
    """Application configuration settings."""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = "guesty"

    # Data storage table names
    bookings_collection: str = "guesty_bookings"
    listings_collection: str = "guesty_listings"
    housekeeping_tasks_collection: str = "housekeeping_tasks"
    sync_logs_collection: str = "sync_logs"
    api_usage_collection: str = "guesty_api_usage"
    sync_cursors_collection: str = "guesty_sync_cursors"

    # Sync behaviour
    sync_max_concurrency: int = int(os.getenv("SYNC_MAX_CONCURRENCY", "5"))
    sync_max_retries: int = int(os.getenv("SYNC_MAX_RETRIES", "3"))
    sync_retry_delay_ms: int = int(os.getenv("SYNC_RETRY_DELAY_MS", "1000"))
    store_max_retries: int = int(os.getenv("STORE_MAX_RETRIES", "2"))
    store_retry_delay_ms: int = int(os.getenv("STORE_RETRY_DELAY_MS", "200"))

    # Monitoring
    rate_limit_remaining_threshold: int = int(os.getenv("RATE_LIMIT_REMAINING_THRESHOLD", "5"))
    metrics_cache_ttl_seconds: int = int(os.getenv("METRICS_CACHE_TTL_SECONDS", "60"))


guesty_config = GuestyConfig()
supabase_config = SupabaseConfig()
app_config = AppConfig()
