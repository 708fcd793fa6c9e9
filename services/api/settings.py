# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List
from pathlib import Path

class Settings(BaseSettings):
    # Persistence
    db_url: str = "sqlite:///data/markify.db"

    # Disk storage
    # Final layout: <upload_root>/<user_id>/<batch_id>/<relative_path>
    upload_root: str = "public/uploads"
    # Archive extraction happens in <tmp_dir>/<uuid>/ and is always removed afterwards
    tmp_dir: str = "tmp"

    # Upload limits (bytes)
    max_upload_size: int = 10 * 1024 * 1024
    max_archive_size: int = 50 * 1024 * 1024
    # Total uncompressed size of one archive; each member is also held to max_upload_size
    max_extracted_size: int = 200 * 1024 * 1024

    # Archive rules
    # Skip __MACOSX/ and dot-entries while walking an extracted archive
    archive_skip_system_entries: bool = True
    # Reject archives that ship images no Markdown file references
    reject_orphaned_images: bool = Field(
        default=False,
        description="Reject archive uploads with unreferenced images in images/",
    )

    # Per-user file listing cache
    list_cache_ttl_seconds: int = 5

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    log_level: str = "INFO"

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    def upload_root_path(self) -> Path:
        return Path(self.upload_root).resolve()

    def tmp_dir_path(self) -> Path:
        return Path(self.tmp_dir).resolve()

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
