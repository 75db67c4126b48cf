import pytest

from generation.onboarding import ArtistOnboarding
from generation.services import build_services
from generation.settings import Settings
from generation.stores import JSONRecordStore, JSONTemplateStore
from generation.supabase_rest import RestRecordStore, RestTemplateStore, SupabaseAuth


def test_local_json_backend(tmp_path):
    services = build_services(Settings(_env_file=None, DATA_DIR=str(tmp_path)))
    assert isinstance(services.templates, JSONTemplateStore)
    assert isinstance(services.records, JSONRecordStore)
    assert services.templates.directory == str(tmp_path / "templates")
    assert services.generator.records is services.records
    with pytest.raises(RuntimeError):
        services.onboarding("idcard")


def test_rest_backend():
    cfg = Settings(_env_file=None, SUPABASE_URL="https://proj.example.co/", SUPABASE_KEY="anon")
    services = build_services(cfg)
    assert isinstance(services.templates, RestTemplateStore)
    assert isinstance(services.records, RestRecordStore)
    assert isinstance(services.accounts, SupabaseAuth)
    assert services.templates.client.base_url == "https://proj.example.co/rest/v1"
    assert services.accounts.url == "https://proj.example.co/auth/v1/signup"

    onboarding = services.onboarding("idcard")
    assert isinstance(onboarding, ArtistOnboarding)
    assert onboarding.background is services.background
    assert onboarding.id_card_template_id == "idcard"
