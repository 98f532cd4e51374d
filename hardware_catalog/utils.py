import secrets
import string
import time
from decimal import Decimal
from urllib.parse import unquote, urlsplit

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def format_price(price: float | Decimal | str) -> str:
    return f"LKR {Decimal(str(price)):,.2f}"


def generate_file_name(original_file_name: str) -> str:
    """`{epoch millis}_{random token}.{extension}`; the extension is kept as uploaded."""
    timestamp = int(time.time() * 1000)
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(13))
    extension = original_file_name.rsplit(".", 1)[-1]
    return f"{timestamp}_{token}.{extension}"


def get_file_name_from_url(url: str) -> str:
    path = urlsplit(url).path
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])
