"""
Workspace Context
Closed configuration struct for everything the composer reads from a
workspace, plus a short-lived snapshot wrapper with explicit expiry.
"""
import datetime as dt
from typing import Any, Mapping, Optional, Union
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from closer.config import get_settings

CURRENCY_SYMBOLS = {
    "PHP": "₱",
    "USD": "$",
    "EUR": "€",
    "MXN": "$",
}


class WorkspaceContext(BaseModel):
    """
    Recognized workspace fields and their defaults:

    - product_name: "our product"
    - price: None, rendered as "Contact us"
    - currency: "PHP"
    - has_cod: True (cash on delivery is assumed available unless disabled)
    - has_promo: False (no promo is claimed unless one is configured)
    - member_rank: "Starter"
    - company_name: "our company"
    - business_package_price: None, rendered as "Contact us"
    - compensation_plan_summary: None
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    product_name: str = "our product"
    price: Optional[Union[float, int, str]] = None
    currency: str = "PHP"
    has_cod: bool = True
    has_promo: bool = False
    member_rank: str = "Starter"
    company_name: str = "our company"
    business_package_price: Optional[Union[float, int, str]] = None
    compensation_plan_summary: Optional[str] = None

    @field_validator("product_name", "company_name", "member_rank", mode="before")
    @classmethod
    def _blank_to_default(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("has_cod", "has_promo", mode="before")
    @classmethod
    def _none_flag_to_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("currency", mode="before")
    @classmethod
    def _upper_currency(cls, value):
        if not value:
            return "PHP"
        return str(value).upper()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WorkspaceContext":
        """
        Lenient construction from a caller's stored record.

        Unknown keys are dropped and invalid values fall back to their
        field defaults, each with a warning. Never raises for content.
        """
        values = {}
        for key, value in dict(data).items():
            if key in cls.model_fields:
                values[key] = value
            else:
                logger.warning(f"Ignoring unknown workspace field {key!r}")

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            for field in invalid:
                logger.warning(f"Invalid workspace field {field!r}={values.get(field)!r}, using default")
                values.pop(field, None)
            return cls.model_validate(values)

    @property
    def currency_symbol(self) -> str:
        return CURRENCY_SYMBOLS.get(self.currency, f"{self.currency} ")

    @staticmethod
    def _format_amount(amount) -> str:
        if amount is None or amount == "":
            return "Contact us"
        if isinstance(amount, (int, float)):
            return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"
        return str(amount)

    @property
    def price_label(self) -> str:
        """Price with currency symbol, or "Contact us" when unpriced."""
        label = self._format_amount(self.price)
        if label == "Contact us":
            return label
        return f"{self.currency_symbol}{label}"

    @property
    def business_package_label(self) -> str:
        label = self._format_amount(self.business_package_price)
        if label == "Contact us":
            return label
        return f"{self.currency_symbol}{label}"


class WorkspaceSnapshot(BaseModel):
    """A workspace configuration read at fetched_at, valid for ttl_seconds."""
    model_config = ConfigDict(frozen=True)

    workspace: WorkspaceContext = Field(default_factory=WorkspaceContext)
    fetched_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    ttl_seconds: int = Field(default_factory=lambda: get_settings().workspace_snapshot_ttl_seconds, ge=0)

    @property
    def expires_at(self) -> dt.datetime:
        return self.fetched_at + dt.timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: dt.datetime | None = None) -> bool:
        now = now or dt.datetime.now(dt.UTC)
        return now >= self.expires_at
