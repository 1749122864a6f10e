"""Currency -- the two currencies of the business and their precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest unit, for ``Decimal.quantize()``."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of the supported currencies (JPY purchases, CNY sales)."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
    }

    SOURCE: ClassVar[str] = "JPY"
    TARGET: ClassVar[str] = "CNY"

    @classmethod
    def is_valid(cls, code: str) -> bool:
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo:
        """Get currency information by code.

        Raises:
            ValueError: if the code is not a supported currency.
        """
        if not cls.is_valid(code):
            raise ValueError(f"Unsupported currency code: {code!r}")
        return cls._CURRENCIES[code.upper().strip()]

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        return cls.get_info(code).decimal_places

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())
