from __future__ import annotations

import logging
import re
from typing import Any

from django.conf import settings

_DEFAULT_PATTERN = r"[1-9A-HJ-NP-Za-km-z]{32,44}"


def _wallet_re() -> re.Pattern:
    raw = getattr(settings, "REVENUE_WALLET_ADDRESS_PATTERN", "") or _DEFAULT_PATTERN
    body = raw.removeprefix("^").removesuffix("$")
    return re.compile(rf"(?<![0-9A-Za-z]){body}(?![0-9A-Za-z])")


def mask_wallet_addresses(text: str) -> str:
    """Mask payout wallet addresses, keeping the first and last 4 characters."""

    if not text:
        return text
    return _wallet_re().sub(lambda m: f"{m.group(0)[:4]}...{m.group(0)[-4:]}", text)


class MaskWalletAddressFilter(logging.Filter):
    """Logging filter to mask wallet addresses in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover
            message = str(getattr(record, "msg", ""))

        # Replace the formatted message and clear args to avoid double formatting.
        record.msg = mask_wallet_addresses(str(message))
        record.args = ()

        for key in ("wallet", "wallet_address", "payout_wallet"):
            if hasattr(record, key):
                value: Any = getattr(record, key)
                if isinstance(value, str):
                    setattr(record, key, mask_wallet_addresses(value))

        return True
