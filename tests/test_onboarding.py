import logging

import pytest

from generation.generator import CardGenerator
from generation.onboarding import ArtistApplication, ArtistOnboarding, clean_part, make_username
from generation.stores import ARTISTS, PROFILES
from renderer.core.errors import UploadFailure
from renderer.core.models import BindingEntry, ImageElement, Template, TextElement
from renderer.core.renderer import TemplateRenderer

from conftest import FakeAccounts, FakeLoader, FakeUploader, MemoryRecordStore, MemoryTemplateStore


def test_username_parts():
    assert clean_part("  Jane   Doe ") == "jane_doe"
    assert clean_part("") == "unknown"
    assert clean_part(None) == "unknown"
    assert make_username("Jane Doe", "Senior Artist", "", "New  Delhi") == "jane_doe@senior_artist@unknown@new_delhi"


@pytest.fixture
def id_card():
    return Template(
        id="idcard",
        type="id_card",
        text_elements=[TextElement(id="n", binding=(BindingEntry("profile", "full_name"),))],
        image_elements=[
            ImageElement(id="photo", x=0, y=0, width=50, height=50,
                         binding=(BindingEntry("profile", "profile_photo_url"),)),
        ],
    )


@pytest.fixture
def setup(id_card, cfg, tracer):
    def make(accounts=None, uploader=None, template_id="idcard"):
        records = MemoryRecordStore()
        uploader = uploader or FakeUploader()
        loader = FakeLoader()
        generator = CardGenerator(
            MemoryTemplateStore([id_card]), records, uploader,
            renderer=TemplateRenderer(loader, tracer), cfg=cfg, tracer=tracer,
        )
        onboarding = ArtistOnboarding(
            records, uploader, generator, accounts or FakeAccounts(), template_id, cfg=cfg
        )
        return onboarding, records, uploader, loader
    return make


@pytest.fixture
def application(png_bytes):
    return ArtistApplication(
        email="jane@example.com",
        password="secret",
        full_name="Jane Doe",
        whatsapp_number="900",
        city="Pune",
        organisation="Glow",
        designation="Artist",
        profile_photo=png_bytes(color=(0, 200, 0)),
        profile_photo_name="me.png",
        logo=png_bytes(size=(2160, 1080)),
        logo_name="brand.png",
        portfolio_pdf=b"%PDF-1.4 portfolio",
    )


async def test_register_full_flow(setup, application):
    onboarding, records, uploader, loader = setup()
    result = await onboarding.register(application)

    assert result.username == "jane_doe@artist@glow@pune"
    profile = records.tables[PROFILES][result.profile_id]
    artist = records.tables[ARTISTS][result.artist_id]
    assert profile["auth_user_id"] == "auth-user-1"
    assert profile["profile_photo_url"] == "https://cdn.test/profile_images/me.jpg"
    assert artist["user_profile_id"] == result.profile_id
    assert artist["status"] == "pending"
    assert artist["logo_url"] == "https://cdn.test/logos/brand.jpg"

    # the fresh photo is drawn from memory, never fetched back from the CDN
    assert loader.requested == []
    assert result.idcard_url == f"https://cdn.test/id_cards/id_card_{result.artist_id}.jpg"
    assert artist["idcard_url"] == result.idcard_url

    await onboarding.background.drain()
    assert artist["portfolio_pdf_url"] == "https://cdn.test/portfolios/portfolio.pdf"
    folders = [folder for _, folder, _ in uploader.calls]
    assert sorted(folders) == ["id_cards", "logos", "portfolios", "profile_images"]


async def test_uploaded_images_are_jpeg(setup, application):
    onboarding, _, uploader, _ = setup()
    await onboarding.upload_images(application)
    for data, _folder, filename in uploader.calls:
        assert data[:3] == b"\xff\xd8\xff"
        assert filename.endswith(".jpg")


async def test_pending_confirmation_stops_early(setup, application):
    onboarding, records, uploader, _ = setup(accounts=FakeAccounts(user_id=None))
    assert await onboarding.register(application) is None
    assert records.tables == {}
    assert onboarding.background.pending() == 0


async def test_portfolio_failure_is_only_logged(setup, application, caplog):
    uploader = FakeUploader(fail_with=UploadFailure("pdf rejected"), fail_folders={"portfolios"})
    onboarding, records, _, _ = setup(uploader=uploader)
    result = await onboarding.register(application)
    assert result.idcard_url

    with caplog.at_level(logging.ERROR):
        await onboarding.background.drain()
    assert records.tables[ARTISTS][result.artist_id]["portfolio_pdf_url"] is None
    assert "portfolio upload" in caplog.text


async def test_id_card_failure_keeps_the_account(setup, application, caplog):
    onboarding, records, _, _ = setup(template_id="missing")
    with caplog.at_level(logging.ERROR):
        result = await onboarding.register(application)
    assert result is not None
    assert result.idcard_url is None
    assert result.artist_id in records.tables[ARTISTS]
    assert "ID card generation" in caplog.text
    await onboarding.background.drain()


async def test_register_without_files(setup):
    onboarding, records, uploader, _ = setup()
    result = await onboarding.register(ArtistApplication(email="a@b.c", password="x", full_name="Ann"))
    assert result.profile_photo_url is None and result.logo_url is None
    assert [folder for _, folder, _ in uploader.calls] == ["id_cards"]
    assert onboarding.background.pending() == 0
