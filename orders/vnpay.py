"""VNPay 2.1.0 payment URL builder and return-URL verification.

Signing: all `vnp_*` parameters except the hash itself, sorted by name,
`quote_plus`-encoded into a query string, HMAC-SHA512 with the merchant
secret. The same canonical string is rebuilt to verify the return call.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

VNPAY_VERSION = "2.1.0"
VNPAY_TZ = ZoneInfo("Asia/Ho_Chi_Minh")
PAYMENT_WINDOW = timedelta(minutes=15)
SUCCESS_CODE = "00"
HASH_PARAMS = {"vnp_SecureHash", "vnp_SecureHashType"}


@dataclass(frozen=True)
class VNPayReturn:
    is_verified: bool
    is_success: bool
    response_code: str
    txn_ref: str
    transaction_no: str
    amount: Optional[Decimal]
    raw: dict = field(default_factory=dict)


def _secret() -> bytes:
    secret = (getattr(settings, "VNPAY_HASH_SECRET", "") or "").strip()
    if not secret:
        raise RuntimeError("VNPAY_HASH_SECRET is not configured")
    return secret.encode("utf-8")


def _format_time(value: datetime) -> str:
    return value.astimezone(VNPAY_TZ).strftime("%Y%m%d%H%M%S")


def to_gateway_amount(amount) -> int:
    """VND amount to VNPay's unit (x100). Rounds to whole VND first."""
    whole = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(whole) * 100


def canonical_query(params: dict) -> str:
    return "&".join(
        f"{key}={quote_plus(str(params[key]))}"
        for key in sorted(params)
        if key not in HASH_PARAMS and params[key] not in (None, "")
    )


def sign(params: dict) -> str:
    return hmac.new(_secret(), canonical_query(params).encode("utf-8"), hashlib.sha512).hexdigest()


def build_payment_url(
    *, amount, txn_ref: str, order_info: str, return_url: str, ip_addr: Optional[str], locale: str = "vn", now=None
) -> str:
    now = now or timezone.now()
    params = {
        "vnp_Version": VNPAY_VERSION,
        "vnp_Command": "pay",
        "vnp_TmnCode": settings.VNPAY_TMN_CODE,
        "vnp_Amount": to_gateway_amount(amount),
        "vnp_CurrCode": "VND",
        "vnp_TxnRef": txn_ref,
        "vnp_OrderInfo": order_info,
        "vnp_OrderType": "other",
        "vnp_Locale": locale,
        "vnp_ReturnUrl": return_url,
        "vnp_IpAddr": ip_addr or "127.0.0.1",
        "vnp_CreateDate": _format_time(now),
        "vnp_ExpireDate": _format_time(now + PAYMENT_WINDOW),
    }
    query = canonical_query(params)
    return f"{settings.VNPAY_PAYMENT_URL}?{query}&vnp_SecureHash={sign(params)}"


def verify_return(params) -> VNPayReturn:
    """Check the signature of a gateway return call and decode its outcome."""

    items = params.dict() if hasattr(params, "dict") else dict(params)
    data = {k: v for k, v in items.items() if k.startswith("vnp_")}
    received = str(data.get("vnp_SecureHash") or "").strip().lower()
    verified = bool(received) and hmac.compare_digest(sign(data), received)

    try:
        amount = Decimal(str(data.get("vnp_Amount"))) / Decimal("100")
    except (InvalidOperation, ValueError, TypeError):
        amount = None

    response_code = str(data.get("vnp_ResponseCode") or "")
    transaction_status = str(data.get("vnp_TransactionStatus") or SUCCESS_CODE)
    return VNPayReturn(
        is_verified=verified,
        is_success=verified and response_code == SUCCESS_CODE and transaction_status == SUCCESS_CODE,
        response_code=response_code,
        txn_ref=str(data.get("vnp_TxnRef") or ""),
        transaction_no=str(data.get("vnp_TransactionNo") or ""),
        amount=amount,
        raw=data,
    )
