from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentMethodType(str, Enum):
    ACSS_DEBIT = "acss_debit"
    AFFIRM = "affirm"
    AFTERPAY_CLEARPAY = "afterpay_clearpay"
    ALIPAY = "alipay"
    AU_BECS_DEBIT = "au_becs_debit"
    BANCONTACT = "bancontact"
    BOLETO = "boleto"
    CARD = "card"
    CUSTOMER_BALANCE = "customer_balance"
    EPS = "eps"
    FPX = "fpx"
    GIROPAY = "giropay"
    GRABPAY = "grabpay"
    IDEAL = "ideal"
    KLARNA = "klarna"
    KONBINI = "konbini"
    LINK = "link"
    OXXO = "oxxo"
    P24 = "p24"
    PAYNOW = "paynow"
    PROMPTPAY = "promptpay"
    SEPA_DEBIT = "sepa_debit"
    SOFORT = "sofort"
    US_BANK_ACCOUNT = "us_bank_account"
    WECHAT_PAY = "wechat_pay"


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    payment_method_type: PaymentMethodType = Field(..., alias="paymentMethodType")
    currency: str = Field(..., pattern=r"^[A-Za-z]{3}$")

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()


class PaymentIntentResult(BaseModel):
    client_secret: str = Field(..., serialization_alias="clientSecret")


class PublicConfig(BaseModel):
    publishable_key: str = Field(..., serialization_alias="publishableKey")


class ErrorDetail(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
