"""Currency -- ISO 4217 registry and minor-unit rounding."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str


class CurrencyRegistry:
    """Registry of reporting and functional currencies with decimal places."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        info.code: info
        for info in (
            # Two decimal places
            CurrencyInfo("USD", 2, "US Dollar"),
            CurrencyInfo("EUR", 2, "Euro"),
            CurrencyInfo("GBP", 2, "Pound Sterling"),
            CurrencyInfo("CHF", 2, "Swiss Franc"),
            CurrencyInfo("CAD", 2, "Canadian Dollar"),
            CurrencyInfo("AUD", 2, "Australian Dollar"),
            CurrencyInfo("NZD", 2, "New Zealand Dollar"),
            CurrencyInfo("CNY", 2, "Chinese Yuan"),
            CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
            CurrencyInfo("SGD", 2, "Singapore Dollar"),
            CurrencyInfo("INR", 2, "Indian Rupee"),
            CurrencyInfo("MXN", 2, "Mexican Peso"),
            CurrencyInfo("BRL", 2, "Brazilian Real"),
            CurrencyInfo("ZAR", 2, "South African Rand"),
            CurrencyInfo("SEK", 2, "Swedish Krona"),
            CurrencyInfo("NOK", 2, "Norwegian Krone"),
            CurrencyInfo("DKK", 2, "Danish Krone"),
            CurrencyInfo("PLN", 2, "Polish Zloty"),
            CurrencyInfo("CZK", 2, "Czech Koruna"),
            CurrencyInfo("HUF", 2, "Hungarian Forint"),
            CurrencyInfo("TRY", 2, "Turkish Lira"),
            CurrencyInfo("AED", 2, "UAE Dirham"),
            CurrencyInfo("SAR", 2, "Saudi Riyal"),
            CurrencyInfo("ILS", 2, "Israeli New Shekel"),
            CurrencyInfo("THB", 2, "Thai Baht"),
            CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
            CurrencyInfo("PHP", 2, "Philippine Peso"),
            CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
            CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
            CurrencyInfo("ARS", 2, "Argentine Peso"),
            CurrencyInfo("COP", 2, "Colombian Peso"),
            CurrencyInfo("EGP", 2, "Egyptian Pound"),
            CurrencyInfo("NGN", 2, "Nigerian Naira"),
            # Zero decimal places
            CurrencyInfo("JPY", 0, "Japanese Yen"),
            CurrencyInfo("KRW", 0, "South Korean Won"),
            CurrencyInfo("CLP", 0, "Chilean Peso"),
            CurrencyInfo("ISK", 0, "Icelandic Krona"),
            CurrencyInfo("VND", 0, "Vietnamese Dong"),
            # Three decimal places
            CurrencyInfo("BHD", 3, "Bahraini Dinar"),
            CurrencyInfo("JOD", 3, "Jordanian Dinar"),
            CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
            CurrencyInfo("OMR", 3, "Omani Rial"),
            CurrencyInfo("TND", 3, "Tunisian Dinar"),
        )
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        if info is None:
            raise ValueError(f"Unknown currency code: {code!r}")
        return info.decimal_places

    @classmethod
    def get_minor_unit(cls, code: str) -> Decimal:
        """One minor unit of the currency; the default balance tolerance."""
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def quantize(cls, amount: Decimal, code: str, rounding: str = ROUND_HALF_UP) -> Decimal:
        """Round ``amount`` to the currency's minor unit."""
        return amount.quantize(
            Decimal(1).scaleb(-cls.get_decimal_places(code)), rounding=rounding
        )
