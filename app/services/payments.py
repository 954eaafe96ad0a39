from decimal import Decimal
from urllib.parse import urlencode, quote

from app.core import config
from app.core.errors import ValidationError
from app.models.restaurant import PaymentMethod


def build_upi_link(restaurant, order, currency: str = None) -> str:
    """
    UPI deep link (``upi://pay``) the customer's payment app can open.
    Only builds the link; confirming payment is still a manual ``mark_paid``.
    """
    if restaurant.payment_method != PaymentMethod.UPI or not restaurant.upi_id:
        raise ValidationError(f"{restaurant.name} does not accept UPI payments.")

    params = {
        "pa": restaurant.upi_id,
        "pn": restaurant.name,
        "am": str(Decimal(str(order.total)).quantize(Decimal("0.01"))),
        "cu": currency or config.DEFAULT_CURRENCY,
        "tn": f"Order {order.pickup_code}",
    }
    return "upi://pay?" + urlencode(params, safe="@", quote_via=quote)
