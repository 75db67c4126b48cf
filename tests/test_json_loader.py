import json

import pytest

from renderer.core.json_loader import (
    TemplateJSONLoader,
    image_element_from_row,
    image_element_to_row,
    rows_of,
    template_from_document,
    template_from_rows,
    text_element_from_row,
    text_element_to_row,
)
from renderer.core.models import (
    BindingEntry,
    ImageElement,
    QRPayloadSpec,
    Template,
    TemplateBinding,
    TextElement,
    binding_from_json,
    binding_to_json,
)


def test_text_row_with_string_numbers_and_nulls():
    el = text_element_from_row(
        {"id": 7, "x": "12.5", "y": None, "width": "", "font_size": "20", "z_index": "3",
         "font": None, "text_color": None, "alignment": "sideways", "text_wrap": None}
    )
    assert el.id == "7"
    assert (el.x, el.y, el.width, el.height) == (12.5, 0.0, 150.0, 40.0)
    assert (el.font_size, el.z_index, el.line_height) == (20.0, 3, 1.3)
    assert (el.font, el.text_color, el.alignment, el.wrap) == ("Poppins", "#000000", "left", False)
    assert el.binding is None


@pytest.mark.parametrize(
    "row, expected",
    [
        ({"bg_transparency": 0.25}, 0.75),
        ({"bg_transparency": "0"}, 0.0),
        ({"bg_transparency": None}, 0.0),
        ({"bg_opacity": 0.4, "bg_transparency": 0.9}, 0.4),
        ({"bg_opacity": 3}, 1.0),
    ],
)
def test_legacy_transparency_maps_to_opacity(row, expected):
    el = text_element_from_row({"id": "t", "bg_color": "#fff", **row})
    assert el.background_opacity == pytest.approx(expected)


def test_legacy_text_column_and_wrap():
    el = text_element_from_row({"id": "t", "text": "Hi", "text_wrap": True})
    assert el.static_text == "Hi"
    assert el.wrap is True


def test_image_row_qr_variants():
    assert image_element_from_row({"id": "i", "qr_text": "{{profile.full_name}}"}).qr == QRPayloadSpec()
    assert image_element_from_row({"id": "i", "qr_text": "  "}).qr is None
    spec = image_element_from_row(
        {"id": "i", "qr_spec": {"name": "username", "error_correction": "h"}}
    ).qr
    assert spec == QRPayloadSpec(name_field="username", error_correction="H")


def test_image_row_defaults():
    el = image_element_from_row({"id": "i", "object_fit": "stretch"})
    assert (el.width, el.height, el.object_fit, el.image_url) == (200.0, 200.0, "contain", "")


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ([], None),
        ("", None),
        ({"template": "Hi {{profile.full_name}}"}, TemplateBinding("Hi {{profile.full_name}}")),
        ([{"template": "x"}], TemplateBinding("x")),
        (
            [{"source": "profile", "field": "city", "fallback": "-", "transform": "shout"}],
            (BindingEntry("profile", "city", "-", None),),
        ),
        ({"source": "artist", "field": "username"}, (BindingEntry("artist", "username"),)),
        (["junk"], None),
    ],
)
def test_binding_shapes(raw, expected):
    assert binding_from_json(raw) == expected


def test_binding_to_json():
    assert binding_to_json(None) == []
    assert binding_to_json(TemplateBinding("x")) == [{"template": "x"}]
    assert binding_to_json((BindingEntry("profile", "city", transform="uppercase"),)) == [
        {"source": "profile", "field": "city", "transform": "uppercase"}
    ]


def test_rows_survive_a_save_and_load():
    text = TextElement(id="t", x=5, y=6, binding=(BindingEntry("profile", "full_name", "Unknown"),),
                       background_color="#000", background_opacity=0.3, alignment="center", wrap=True)
    image = ImageElement(id="i", x=1, y=2, qr=QRPayloadSpec(city_field="town", error_correction="Q"))
    assert text_element_from_row(text_element_to_row(text, "tpl")) == text
    assert image_element_from_row(image_element_to_row(image, "tpl")) == image


def test_template_from_rows_reads_background_column():
    t = template_from_rows({"id": "x", "name": None, "type": "poster", "background_img_url": "bg.png"})
    assert (t.name, t.type, t.background_url) == ("Untitled", "id_card", "bg.png")


def test_document_requires_template_section():
    with pytest.raises(ValueError):
        template_from_document({"text_elements": []})


def test_loader_save_and_load(tmp_path):
    template = Template(
        id="tpl", name="Cert", type="certificate", background_url="bg.png",
        text_elements=[TextElement(id="t", static_text="Hello")],
        image_elements=[ImageElement(id="i", image_url="logo.png")],
    )
    path = tmp_path / "nested" / "tpl.json"
    TemplateJSONLoader(str(path)).save(template)

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["template"]["background_img_url"] == "bg.png"
    assert not (tmp_path / "nested" / "tpl.json.tmp").exists()

    loaded = TemplateJSONLoader(str(path)).load()
    assert loaded == template


def test_loader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        TemplateJSONLoader(str(tmp_path / "none.json")).load()


def test_rows_of():
    assert rows_of(None) == []
    assert rows_of({"id": 1}) == [{"id": 1}]
    assert rows_of([{"id": 1}, {"id": 2}]) == [{"id": 1}, {"id": 2}]
