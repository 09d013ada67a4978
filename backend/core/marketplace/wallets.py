from __future__ import annotations

from marketplace.models import PayoutProfile


def payout_wallet_for_user(user_id: int) -> str | None:
    """Default payout wallet resolver (see REVENUE_PAYOUT_WALLET_RESOLVER).

    Always reads the live profile row; callers must not cache the result.
    """

    wallet = (
        PayoutProfile.objects.filter(user_id=user_id)
        .values_list("payout_wallet", flat=True)
        .first()
    )
    wallet = (wallet or "").strip()
    return wallet or None
