import pytest

from conftest import make_payload

from pss_monitor.errors import ParseError
from pss_monitor.parser import parse_product


def test_full_payload():
    snap = parse_product(make_payload("3158263", [("101", "S"), ("102", "M")]), "3158263")

    d = snap.descriptor
    assert d.product_id == "3158263"
    assert d.title == "Veste de running"
    assert d.brand == "Asics"
    assert d.price == "39,99 €"
    assert d.original_price == "89,99 €"
    assert d.discount == "55%"
    assert d.image_url == "https://cdn.test/img/1.jpg"
    assert d.in_stock is True
    assert list(snap.size_mapping) == ["101", "102"]
    assert snap.size_mapping["101"].label == "S"
    assert snap.size_mapping["101"].variant_id == "9101"
    assert snap.available_sizes == ["101", "102"]
    assert snap.availability["102"].quantity == 1


def test_missing_fields_fall_back_to_defaults():
    snap = parse_product({"productID": 42}, "42")

    d = snap.descriptor
    assert d.product_id == "42"
    assert d.title == "Unknown"
    assert d.brand == "Unknown"
    assert d.price is None
    assert d.discount is None
    assert d.image_url is None
    assert d.in_stock is False
    assert snap.size_mapping == {}
    assert snap.availability == {}


def test_legacy_aliases():
    payload = {
        "name": "Short",
        "prices": {"specialPrice": "9,99 €", "retailPrice": "19,99 €"},
        "thumbnails": ["https://cdn.test/thumb.jpg"],
        "in_stock": "1",
    }

    d = parse_product(payload, "7").descriptor

    assert d.product_id == "7"
    assert d.price == "9,99 €"
    assert d.original_price == "19,99 €"
    assert d.image_url == "https://cdn.test/thumb.jpg"
    assert d.in_stock is True


def test_product_without_size_group_is_valid():
    payload = make_payload("1", [])
    payload["options"] = [{"code": "color", "values": [{"id": 7, "value": "Noir"}]}]

    snap = parse_product(payload, "1")

    assert snap.size_mapping == {}
    assert snap.available_sizes == []


def test_size_values_without_id_are_skipped():
    payload = make_payload("1", [("101", "S")])
    payload["options"][1]["values"].append({"value": "XL"})

    snap = parse_product(payload, "1")

    assert list(snap.size_mapping) == ["101"]


def test_label_for_unknown_size_is_the_id():
    snap = parse_product(make_payload("1", [("101", "S")]), "1")
    assert snap.label_for("101") == "S"
    assert snap.label_for("999") == "999"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        ["not", "an", "object"],
        {"options": "size"},
        {"options": [{"code": "size", "values": {"id": 1}}]},
    ],
)
def test_malformed_payload_raises(payload):
    with pytest.raises(ParseError):
        parse_product(payload, "1")


def test_zero_discount_and_price_count_as_missing():
    payload = make_payload("1", [])
    payload["prices"] = {"current": 0, "specialPrice": "9,99 €", "discount": 0}

    d = parse_product(payload, "1").descriptor

    assert d.discount is None
    assert d.price == "9,99 €"


def test_string_zero_discount_is_kept():
    payload = make_payload("1", [])
    payload["prices"] = {"current": "10", "discount": "0"}

    assert parse_product(payload, "1").descriptor.discount == "0%"
