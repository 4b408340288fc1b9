"""Staff authorization.

Staff and admins log in with a PIN; the PIN itself is the credential every
command carries. Check-in from the kiosk needs no credential.
"""

from __future__ import annotations

import hmac
import os

STAFF = "staff"
ADMIN = "admin"
STAFF_ROLES = frozenset({STAFF, ADMIN})


class PinAuthorizer:
    def __init__(self, *, staff_pin: str | None = None, admin_pin: str | None = None) -> None:
        self._staff_pin = staff_pin or None
        self._admin_pin = admin_pin or None

    @classmethod
    def from_env(cls, *, staff_pin: str | None = None, admin_pin: str | None = None) -> "PinAuthorizer":
        """Explicit PINs win over `QUEUE_STAFF_PIN` / `QUEUE_ADMIN_PIN`."""
        return cls(
            staff_pin=staff_pin or os.environ.get("QUEUE_STAFF_PIN"),
            admin_pin=admin_pin or os.environ.get("QUEUE_ADMIN_PIN"),
        )

    def resolve_role(self, credential: str | None) -> str | None:
        if not credential:
            return None
        if _pin_matches(credential, self._admin_pin):
            return ADMIN
        if _pin_matches(credential, self._staff_pin):
            return STAFF
        return None


def _pin_matches(credential: str, pin: str | None) -> bool:
    # compare_digest only accepts ASCII str; bytes work for any PIN.
    return bool(pin) and hmac.compare_digest(credential.encode("utf-8"), pin.encode("utf-8"))
