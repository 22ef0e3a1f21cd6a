import math
import re

STEAM_CURRENCY_CODES = {
    "1": "USD",
    "2": "GBP",
    "3": "EUR",
    "4": "CHF",
    "5": "RUB",
    "6": "PLN",
    "7": "BRL",
    "8": "JPY",
    "9": "NOK",
    "10": "IDR",
    "11": "MYR",
    "12": "PHP",
    "13": "SGD",
    "14": "THB",
    "15": "VND",
    "16": "KRW",
    "17": "TRY",
    "18": "UAH",
    "19": "MXN",
    "20": "CAD",
    "21": "AUD",
    "22": "NZD",
    "23": "CNY",
    "24": "INR",
    "25": "CLP",
    "26": "PEN",
    "27": "COP",
    "28": "ZAR",
    "29": "HKD",
    "30": "TWD",
    "31": "SAR",
    "32": "AED",
    "33": "SEK",
    "34": "ARS",
    "35": "ILS",
    "36": "BYN",
    "37": "KZT",
    "38": "KWD",
    "39": "QAR",
    "40": "CRC",
    "41": "UYU",
}

SKINPORT_CURRENCIES = {
    "AUD",
    "BRL",
    "CAD",
    "CHF",
    "CNY",
    "CZK",
    "DKK",
    "EUR",
    "GBP",
    "HRK",
    "NOK",
    "PLN",
    "RUB",
    "SEK",
    "TRY",
    "USD",
}

SKINPORT_FALLBACK_CURRENCY = "USD"

CURRENCY_SYMBOLS = {
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "INR": "₹",
    "RUB": "₽",
    "JPY": "¥",
    "CNY": "¥",
    "KRW": "₩",
    "BRL": "R$",
    "TRY": "₺",
    "PLN": "zł",
    "UAH": "₴",
}

THOUSANDS_GROUPED = {
    # Western 1,234,567 and Indian lakh 12,34,567 grouping
    ",": re.compile(r"^\d{1,3}(,\d{2,3})*,\d{3}$"),
    ".": re.compile(r"^\d{1,3}(\.\d{3})+$"),
}


def currency_iso(code: str) -> str:
    """Convert a Steam numeric currency code (or ISO code) to ISO 4217."""
    code = str(code).strip()
    if code.isdigit():
        return STEAM_CURRENCY_CODES.get(code, "USD")
    return code.upper()


def skinport_currency(code: str) -> str:
    """Return the Skinport request currency, remapping unsupported ones."""
    iso = currency_iso(code)
    if iso in SKINPORT_CURRENCIES:
        return iso
    return SKINPORT_FALLBACK_CURRENCY


def currency_symbol(iso: str) -> str:
    """Return a display symbol for an ISO currency code."""
    return CURRENCY_SYMBOLS.get(iso, f"{iso} ")


def normalize_item_key(item_key: str) -> str:
    """Strip surrounding whitespace from a market hash name."""
    return item_key.strip() if item_key else ""


def normalize_separators(numeric: str) -> str:
    """Rewrite a digits/commas/dots string into a float-parsable string."""
    has_comma = "," in numeric
    has_dot = "." in numeric

    # Both present: whichever comes last is the decimal separator
    if has_comma and has_dot:
        if numeric.rfind(",") > numeric.rfind("."):
            return numeric.replace(".", "").replace(",", ".")
        return numeric.replace(",", "")

    if has_comma:
        if THOUSANDS_GROUPED[","].match(numeric):
            return numeric.replace(",", "")
        return numeric.replace(",", ".")

    if has_dot and numeric.count(".") > 1 and THOUSANDS_GROUPED["."].match(numeric):
        return numeric.replace(".", "")

    return numeric


def parse_price_string(price: str | None) -> float | None:
    """Parse a localized price string like "₹ 2,970.50" into a float.

    Returns None for empty, malformed or non-positive values.
    """
    if not price or not isinstance(price, str):
        return None

    numeric = re.sub(r"[^0-9.,]", "", price).strip(".,")
    if not numeric:
        return None

    try:
        value = float(normalize_separators(numeric))
    except ValueError:
        return None

    if math.isnan(value) or math.isinf(value) or value <= 0:
        return None

    return value


def parse_price_number(price: object) -> float | None:
    """Validate a structured numeric price field."""
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    if math.isnan(price) or math.isinf(price) or price <= 0:
        return None
    return float(price)
