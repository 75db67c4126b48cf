# generation/settings.py
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Record / template store (PostgREST style API)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    HTTP_TIMEOUT: float = 30.0

    # Local JSON store used by the desktop editor when no REST URL is set
    DATA_DIR: str = "data"

    # Cloudinary (either use CLOUDINARY_URL or the 3 fields below)
    CLOUDINARY_URL: Optional[str] = None
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None

    # Output
    JPEG_QUALITY: int = 90
    DOWNSCALE: bool = True
    MAX_OUTPUT_WIDTH: int = 1080
    MAX_OUTPUT_HEIGHT: int = 1080
    DEFAULT_SURFACE_WIDTH: int = 1000
    DEFAULT_SURFACE_HEIGHT: int = 600

    # Uploaded photos / logos
    UPLOAD_QUALITY: int = 80
    MAX_UPLOAD_WIDTH: int = 1080
    MAX_UPLOAD_HEIGHT: int = 720

    # Upload folders
    ID_CARD_FOLDER: str = "id_cards"
    CERTIFICATE_FOLDER: str = "certificates"
    PROFILE_IMAGE_FOLDER: str = "profile_images"
    LOGO_FOLDER: str = "logos"
    PORTFOLIO_FOLDER: str = "portfolios"

    # Env
    LANGUAGE: str = "en"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    def output_limit(self):
        if not self.DOWNSCALE:
            return None
        return (self.MAX_OUTPUT_WIDTH, self.MAX_OUTPUT_HEIGHT)

    def folder_for(self, template_type: str) -> str:
        return self.CERTIFICATE_FOLDER if template_type == "certificate" else self.ID_CARD_FOLDER


settings = Settings()
