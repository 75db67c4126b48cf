import pytest

from renderer.core.errors import QRPayloadError
from renderer.core.models import DataContext, QRPayloadSpec
from renderer.core.qr_payload import encode, payload_fields, render_qr


def test_encode_orders_and_labels_fields():
    payload = encode({"city": "Pune", "name": "Jane", "number": "+91 900"})
    assert payload == "{Name:Jane, Number:+91 900, City:Pune}"


def test_encode_skips_empty_fields():
    assert encode({"name": "  Jane ", "number": "", "city": None}) == "{Name:Jane}"
    assert encode({"city": "Pune"}) == "{City:Pune}"


def test_encode_rejects_empty_payload():
    with pytest.raises(QRPayloadError):
        encode({"name": " ", "number": None})
    with pytest.raises(ValueError):
        encode({})


def test_payload_fields_read_merged_context():
    ctx = DataContext(profile={"full_name": "Jane", "whatsapp_number": "123"}, artist={"city": "Pune"})
    assert payload_fields(QRPayloadSpec(), ctx) == {"name": "Jane", "number": "123", "city": "Pune"}

    custom = QRPayloadSpec(name_field="username", number_field="phone", city_field="town")
    assert payload_fields(custom, ctx) == {"name": None, "number": None, "city": None}
    assert payload_fields(QRPayloadSpec(), None) == {"name": None, "number": None, "city": None}


@pytest.mark.parametrize("level", ["L", "M", "Q", "H", "x"])
def test_render_qr_is_square_and_quiet_zone_free(level):
    img = render_qr("{Name:Jane, City:Pune}", 180, 120, level)
    assert img.mode == "RGBA"
    assert img.size == (120, 120)
    # finder pattern starts in the corner when there is no border
    assert img.getpixel((0, 0))[:3] == (0, 0, 0)
    colors = {px[:3] for px in img.getdata()}
    assert (255, 255, 255) in colors
