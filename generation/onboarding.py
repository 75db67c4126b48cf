"""Artist sign-up: uploads, account creation, records, portfolio and the first ID card."""

from __future__ import annotations

import asyncio
import io
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from PIL import Image

from generation.generator import BackgroundTasks, CardGenerator
from generation.settings import Settings, settings as default_settings
from generation.stores import ARTISTS, PROFILES, BlobUploader, RecordStore
from renderer.core.errors import CardGenerationError
from renderer.core.raster_export import convert_upload

logger = logging.getLogger(__name__)

PROFILE_PHOTO_FIELD = "profile_photo_url"


def clean_part(value: Optional[str]) -> str:
    cleaned = re.sub(r"\s+", "_", (value or "").strip()).lower()
    return cleaned or "unknown"


def make_username(full_name: str, designation: str, organisation: str, city: str) -> str:
    return "@".join(clean_part(v) for v in (full_name, designation, organisation, city))


class AccountCreator(Protocol):
    async def create_account(self, email: str, password: str) -> Optional[str]:
        """Auth user id, or None while the account still awaits confirmation."""


@dataclass
class ArtistApplication:
    email: str
    password: str
    full_name: str
    whatsapp_number: str = ""
    city: str = ""
    organisation: str = ""
    designation: str = ""
    instagram_handle: str = ""
    profile_photo: Optional[bytes] = None
    profile_photo_name: str = "profile.jpg"
    logo: Optional[bytes] = None
    logo_name: str = "logo.jpg"
    portfolio_pdf: Optional[bytes] = None
    portfolio_name: str = "portfolio.pdf"


@dataclass
class OnboardingResult:
    artist_id: str
    profile_id: str
    username: str
    profile_photo_url: Optional[str] = None
    logo_url: Optional[str] = None
    idcard_url: Optional[str] = None


def _jpg_name(name: str) -> str:
    return os.path.splitext(os.path.basename(name))[0] + ".jpg"


class ArtistOnboarding:
    def __init__(
        self,
        records: RecordStore,
        uploader: BlobUploader,
        generator: CardGenerator,
        accounts: AccountCreator,
        id_card_template_id: str,
        background: Optional[BackgroundTasks] = None,
        cfg: Optional[Settings] = None,
    ):
        self.records = records
        self.uploader = uploader
        self.generator = generator
        self.accounts = accounts
        self.id_card_template_id = id_card_template_id
        self.background = background or BackgroundTasks()
        self.cfg = cfg or default_settings

    # -------------------------------------------------
    # uploads
    # -------------------------------------------------
    async def _upload_image(self, data: Optional[bytes], name: str, folder: str) -> Optional[str]:
        if not data:
            return None
        loop = asyncio.get_running_loop()
        jpeg = await loop.run_in_executor(
            None,
            convert_upload,
            data,
            (self.cfg.MAX_UPLOAD_WIDTH, self.cfg.MAX_UPLOAD_HEIGHT),
            self.cfg.UPLOAD_QUALITY,
        )
        return await self.uploader.upload(jpeg, folder, _jpg_name(name))

    async def upload_images(self, app: ArtistApplication) -> Dict[str, Optional[str]]:
        photo_url, logo_url = await asyncio.gather(
            self._upload_image(app.profile_photo, app.profile_photo_name, self.cfg.PROFILE_IMAGE_FOLDER),
            self._upload_image(app.logo, app.logo_name, self.cfg.LOGO_FOLDER),
        )
        return {"profile_photo_url": photo_url, "logo_url": logo_url}

    async def upload_portfolio(self, artist_id: str, data: bytes, name: str) -> str:
        url = await self.uploader.upload(data, self.cfg.PORTFOLIO_FOLDER, name)
        await self.records.update_fields(ARTISTS, artist_id, {"portfolio_pdf_url": url})
        logger.info("Portfolio for artist %s stored at %s", artist_id, url)
        return url

    # -------------------------------------------------
    # flow
    # -------------------------------------------------
    async def register(self, app: ArtistApplication) -> Optional[OnboardingResult]:
        """Run the whole sign-up. Returns None when no account came back yet."""
        uploads, user_id = await asyncio.gather(
            self.upload_images(app),
            self.accounts.create_account(app.email, app.password),
        )
        if not user_id:
            logger.info("No account returned for %s, waiting for email confirmation", app.email)
            return None

        profile = await self.records.insert(
            PROFILES,
            {
                "auth_user_id": user_id,
                "full_name": app.full_name,
                "whatsapp_number": app.whatsapp_number or None,
                "city": app.city or None,
                "profile_photo_url": uploads["profile_photo_url"],
            },
        )

        username = make_username(app.full_name, app.designation, app.organisation, app.city)
        artist = await self.records.insert(
            ARTISTS,
            {
                "user_profile_id": profile["id"],
                "organisation": app.organisation or None,
                "designation": app.designation or None,
                "instagram_handle": app.instagram_handle or None,
                "username": username,
                "portfolio_pdf_url": None,
                "logo_url": uploads["logo_url"],
                "status": "pending",
            },
        )
        result = OnboardingResult(
            artist_id=artist["id"],
            profile_id=profile["id"],
            username=username,
            profile_photo_url=uploads["profile_photo_url"],
            logo_url=uploads["logo_url"],
        )

        if app.portfolio_pdf:
            self.background.spawn(
                self.upload_portfolio(result.artist_id, app.portfolio_pdf, app.portfolio_name),
                f"portfolio upload for {result.artist_id}",
            )

        preloaded = {}
        if app.profile_photo:
            try:
                with Image.open(io.BytesIO(app.profile_photo)) as img:
                    preloaded[PROFILE_PHOTO_FIELD] = img.convert("RGBA")
            except OSError as exc:
                logger.warning("Profile photo could not be decoded for the ID card: %s", exc)

        try:
            result.idcard_url = await self.generator.generate(
                "id_card", self.id_card_template_id, result.artist_id, preloaded_images=preloaded or None
            )
        except CardGenerationError as exc:
            # the account exists already; the card can be generated again later
            logger.error("ID card generation for %s failed: %s", result.artist_id, exc)

        return result
