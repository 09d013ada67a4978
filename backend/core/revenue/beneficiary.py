from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class UserBeneficiary:
    """A platform user; paid to whatever payout wallet they have at split time."""

    user_id: int


@dataclass(frozen=True, slots=True)
class StandaloneWallet:
    """A payout destination not tied to any platform account."""

    address: str
    label: str


Beneficiary = Union[UserBeneficiary, StandaloneWallet]


def beneficiary_of(share) -> Beneficiary:
    """Lift the nullable storage columns of a share row back into the variant."""

    if share.user_id is not None:
        return UserBeneficiary(user_id=share.user_id)
    return StandaloneWallet(address=share.wallet_address, label=share.recipient_label)
