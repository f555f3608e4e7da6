"""Payment signature verification.

The gateway signs ``"<order_id>|<payment_id>"`` with HMAC-SHA256 keyed by the
merchant's secret and returns the hex digest to the client. Recomputing it
here is the only accepted proof that a payment succeeded.
"""

import hashlib
import hmac


def compute_signature(external_order_id: str, external_payment_id: str, secret: str) -> str:
    message = f"{external_order_id}|{external_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(external_order_id: str, external_payment_id: str, signature: str, secret: str) -> bool:
    if not (external_order_id and external_payment_id and signature and secret):
        return False
    expected = compute_signature(external_order_id, external_payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())
