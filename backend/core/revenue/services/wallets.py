from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils.module_loading import import_string

from revenue.beneficiary import Beneficiary, StandaloneWallet, UserBeneficiary

logger = logging.getLogger(__name__)

_DEFAULT_ADDRESS_PATTERN = r"^[1-9A-HJ-NP-Za-km-z]{32,44}$"


class WalletResolverNotConfigured(RuntimeError):
    """Raised when REVENUE_PAYOUT_WALLET_RESOLVER is empty."""


@dataclass(frozen=True, slots=True)
class WalletResolution:
    address: str | None
    unresolved: bool = False


def _address_re() -> re.Pattern:
    pattern = (getattr(settings, "REVENUE_WALLET_ADDRESS_PATTERN", "") or _DEFAULT_ADDRESS_PATTERN).strip()
    return re.compile(pattern)


def is_valid_wallet_address(address: str | None) -> bool:
    return bool(address) and _address_re().fullmatch(address.strip()) is not None


def validate_wallet_address(address: str | None) -> str:
    """Return the normalized address or raise ValidationError on a malformed one."""

    normalized = (address or "").strip()
    if not normalized:
        raise ValidationError({"wallet_address": "wallet_address is required."})
    if not is_valid_wallet_address(normalized):
        raise ValidationError({"wallet_address": "Malformed wallet address."})
    return normalized


def get_payout_wallet_resolver() -> Callable[[int], str | None]:
    """Load the callable that returns a user's live payout wallet.

    Settings:
    - REVENUE_PAYOUT_WALLET_RESOLVER: dotted path to `resolver(user_id: int) -> str | None`.
    """

    resolver_path = (getattr(settings, "REVENUE_PAYOUT_WALLET_RESOLVER", "") or "").strip()
    if not resolver_path:
        raise WalletResolverNotConfigured(
            "REVENUE_PAYOUT_WALLET_RESOLVER is not configured. "
            "Provide a resolver callable returning a user's current payout wallet."
        )
    return import_string(resolver_path)


def current_payout_wallet(user_id: int) -> str | None:
    wallet = get_payout_wallet_resolver()(user_id)
    wallet = (wallet or "").strip()
    return wallet or None


def resolve(beneficiary: Beneficiary) -> WalletResolution:
    """Resolve a beneficiary to the address that should be paid right now.

    Standalone wallets are returned verbatim after grammar validation and raise
    ValidationError when malformed. Users resolve to their live payout wallet; a
    missing or malformed one yields an unresolved resolution instead of an error.
    """

    if isinstance(beneficiary, StandaloneWallet):
        return WalletResolution(address=validate_wallet_address(beneficiary.address))

    if not isinstance(beneficiary, UserBeneficiary):
        raise TypeError(f"Unsupported beneficiary: {beneficiary!r}")

    wallet = current_payout_wallet(beneficiary.user_id)
    if wallet is None:
        logger.warning("revenue.wallet.unresolved user_id=%s reason=missing", beneficiary.user_id)
        return WalletResolution(address=None, unresolved=True)
    if not is_valid_wallet_address(wallet):
        logger.warning("revenue.wallet.unresolved user_id=%s reason=malformed", beneficiary.user_id)
        return WalletResolution(address=None, unresolved=True)
    return WalletResolution(address=wallet)


def resolve_for_split(beneficiary: Beneficiary) -> WalletResolution:
    """Like `resolve`, but only a missing resolver setting raises.

    Split calculation runs inside the sale confirmation, so a malformed address
    or a failing resolver backend yields an unresolved entry instead.
    """

    try:
        return resolve(beneficiary)
    except WalletResolverNotConfigured:
        raise
    except ValidationError:
        logger.warning("revenue.wallet.unresolved standalone=true reason=malformed")
    except Exception:
        logger.exception(
            "revenue.wallet.unresolved user_id=%s reason=resolver_error",
            getattr(beneficiary, "user_id", None),
        )
    return WalletResolution(address=None, unresolved=True)
