"""Builds the stores, uploader and generator for the configured backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from generation.cloudinary_upload import CloudinaryUploader
from generation.generator import BackgroundTasks, CardGenerator
from generation.onboarding import AccountCreator, ArtistOnboarding
from generation.settings import Settings, settings as default_settings
from generation.stores import BlobUploader, JSONRecordStore, JSONTemplateStore, RecordStore, TemplateStore
from generation.supabase_rest import RestRecordStore, RestTemplateStore, SupabaseAuth, SupabaseRest
from renderer.core.image_loader import AsyncImageLoader
from renderer.core.renderer import TemplateRenderer
from renderer.core.tracing import LoggingTracer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    templates: TemplateStore
    records: RecordStore
    uploader: BlobUploader
    generator: CardGenerator
    background: BackgroundTasks
    accounts: Optional[AccountCreator] = None

    def onboarding(self, id_card_template_id: str) -> ArtistOnboarding:
        """Sign-up flow; needs an account backend (REST mode only)."""
        if self.accounts is None:
            raise RuntimeError("Artist onboarding needs SUPABASE_URL and SUPABASE_KEY")
        return ArtistOnboarding(
            self.records,
            self.uploader,
            self.generator,
            self.accounts,
            id_card_template_id,
            background=self.background,
            cfg=self.generator.cfg,
        )


def build_services(cfg: Optional[Settings] = None) -> Services:
    cfg = cfg or default_settings
    accounts = None
    if cfg.SUPABASE_URL and cfg.SUPABASE_KEY:
        client = SupabaseRest(cfg.SUPABASE_URL, cfg.SUPABASE_KEY, timeout=cfg.HTTP_TIMEOUT)
        templates = RestTemplateStore(client)
        records = RestRecordStore(client)
        accounts = SupabaseAuth(client)
        logger.info("Using REST stores at %s", cfg.SUPABASE_URL)
    else:
        templates = JSONTemplateStore(os.path.join(cfg.DATA_DIR, "templates"))
        records = JSONRecordStore(os.path.join(cfg.DATA_DIR, "records.json"))
        logger.info("Using JSON stores under %s", os.path.abspath(cfg.DATA_DIR))

    uploader = CloudinaryUploader(cfg)
    tracer = LoggingTracer()
    renderer = TemplateRenderer(AsyncImageLoader(timeout=cfg.HTTP_TIMEOUT), tracer)
    generator = CardGenerator(templates, records, uploader, renderer=renderer, cfg=cfg, tracer=tracer)
    return Services(templates, records, uploader, generator, BackgroundTasks(), accounts)
