import re

import pytest

from hardware_catalog.utils import format_price, generate_file_name, get_file_name_from_url


@pytest.mark.parametrize(
    "price, expected",
    [
        (1500, "LKR 1,500.00"),
        ("12.5", "LKR 12.50"),
        (1000000, "LKR 1,000,000.00"),
        (0.99, "LKR 0.99"),
    ],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


def test_generate_file_name_shape():
    name = generate_file_name("angle-grinder.PNG")
    assert re.fullmatch(r"\d{13}_[a-z0-9]{13}\.PNG", name)


def test_generate_file_name_is_unique():
    names = {generate_file_name("drill.jpg") for _ in range(50)}
    assert len(names) == 50


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://abc.supabase.co/storage/v1/object/public/product-images/1700000000000_x1y2.jpg",
         "1700000000000_x1y2.jpg"),
        ("https://abc.supabase.co/storage/v1/object/public/product-images/17_a.png?t=1", "17_a.png"),
        ("http://storage.test/storage/v1/object/public/product-images/my%20drill.webp", "my drill.webp"),
        ("plain-name.png", "plain-name.png"),
    ],
)
def test_get_file_name_from_url(url, expected):
    assert get_file_name_from_url(url) == expected


async def test_public_url_round_trips_to_blob_name(storage):
    for name in ["1700000000000_abc.png", "with space.jpg", generate_file_name("x.webp")]:
        assert get_file_name_from_url(storage.url_for(name)) == name
