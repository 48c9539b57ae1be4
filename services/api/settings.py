# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List, Literal
from pathlib import Path

class Settings(BaseSettings):
    # Storage settings
    # Test records live in a JSON file store; override via .env (STORAGE_BACKEND=json)
    storage_backend: str = "json"
    data_dir: str = "data"

    # Where exported (composed) PDFs are written. Served under /uploads.
    upload_dir: str = "uploads"

    # CORS settings
    allowed_origins: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    # ---- Composition settings ----

    # Page bitmaps for the editor are rendered at this scale (1.0 = 72 DPI).
    render_scale: float = 1.5

    # Anything smaller than this is not a PDF we are willing to return.
    min_output_bytes: int = 100

    # Draw a small gray "[Masked]" label inside large enough masks.
    mask_labels: bool = True

    # What to do with regions that stick out of the page:
    #   clamp  -> intersect with the page, skip if nothing is left
    #   reject -> fail the request as invalid input
    region_bounds_policy: Literal["clamp", "reject"] = Field(
        default="clamp",
        description="Handling of regions with left+width > 1 or top+height > 1",
    )

    # Upload limits
    max_upload_mb: int = 25

    # Max number of compositions running in parallel per application instance.
    # PDFium itself is serialized by a process lock; this bounds queued memory.
    max_parallel_compositions: int = 1

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
