import logging

from generation.settings import Settings
from renderer.core.logger import setup_logging
from renderer.core.paths import find_font_file


def test_settings_defaults(cfg):
    assert cfg.JPEG_QUALITY == 90
    assert cfg.output_limit() == (1080, 1080)
    assert cfg.folder_for("id_card") == "id_cards"
    assert cfg.folder_for("certificate") == "certificates"
    assert (cfg.DEFAULT_SURFACE_WIDTH, cfg.DEFAULT_SURFACE_HEIGHT) == (1000, 600)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DOWNSCALE", "false")
    monkeypatch.setenv("JPEG_QUALITY", "75")
    cfg = Settings(_env_file=None)
    assert cfg.output_limit() is None
    assert cfg.JPEG_QUALITY == 75


def test_find_font_file(tmp_path):
    for name in ("Poppins-Regular.ttf", "Arial.ttf", "readme.txt"):
        (tmp_path / name).write_bytes(b"")
    assert find_font_file("Arial", str(tmp_path)).endswith("Arial.ttf")
    assert find_font_file("poppins", str(tmp_path)).endswith("Poppins-Regular.ttf")
    assert find_font_file("Roboto", str(tmp_path)) is None
    assert find_font_file(None, str(tmp_path)) is None
    assert find_font_file("Arial", str(tmp_path / "missing")) is None


def test_setup_logging_is_idempotent(tmp_path):
    root = logging.getLogger("bbn")
    saved = {name: list(logging.getLogger(name).handlers) for name in ("bbn", "renderer", "generation", "ui")}
    try:
        if hasattr(root, "_configured"):
            delattr(root, "_configured")
        setup_logging(debug=True, log_dir=tmp_path)
        count = len(logging.getLogger("renderer").handlers)
        setup_logging(debug=True, log_dir=tmp_path)
        assert len(logging.getLogger("renderer").handlers) == count
        assert (tmp_path / "app.log").exists()
    finally:
        for name, handlers in saved.items():
            logger = logging.getLogger(name)
            for handler in logger.handlers[:]:
                if handler not in handlers:
                    logger.removeHandler(handler)
                    handler.close()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)
        if hasattr(root, "_configured"):
            delattr(root, "_configured")
