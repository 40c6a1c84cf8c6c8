"""Layout of the user documents stored in the 'Users' collection.

One document per user, identified by email, with the shares embedded as an
ordered list of sub-documents:

    {
        "username": ..., "email": ..., "emailConfirmed": false, "phone": ...,
        "hash": <bcrypt hash>, "firstName": ..., "middleName": ..., "lastName": ...,
        "accountStatus": ..., "balance": 0.0, "createdDate": ...,
        "shares": [
            {"shareID": ..., "symbol": ..., "company": ..., "quantity": 1,
             "priceBought": ..., "priceSold": ..., "soldIndicator": "N",
             "dateBought": ..., "dateSold": ..., "ownedOrSold": "Owned"},
        ],
    }
"""

import enum

from bson import ObjectId

# --- Campos del documento de usuario ---
EMAIL = "email"
HASH = "hash"
EMAIL_CONFIRMED = "emailConfirmed"
ACCOUNT_STATUS = "accountStatus"
BALANCE = "balance"
CREATED_DATE = "createdDate"
SHARES = "shares"

# --- Campos del sub-documento de acción ---
SHARE_ID = "shareID"
SOLD_INDICATOR = "soldIndicator"
PRICE_SOLD = "priceSold"
DATE_SOLD = "dateSold"
OWNED_OR_SOLD = "ownedOrSold"


class SoldIndicator(str, enum.Enum):
    """State of a lot. Only OPEN -> CLOSED is allowed."""
    OPEN = "N"
    CLOSED = "Y"


class ShareStatus(str, enum.Enum):
    OWNED = "Owned"
    SOLD = "Sold"


class BalanceDirection(str, enum.Enum):
    """Direction of a balance adjustment."""
    CREDIT = "credit"
    DEBIT = "debit"

    def apply(self, current: float, amount: float) -> float:
        if self is BalanceDirection.CREDIT:
            return current + amount
        return current - amount

    def reverse(self) -> "BalanceDirection":
        if self is BalanceDirection.CREDIT:
            return BalanceDirection.DEBIT
        return BalanceDirection.CREDIT


class TransactionType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"


def by_email(email: str) -> dict:
    """Filter selecting the user document with the given email."""
    return {EMAIL: {"$eq": email}}


def new_share_id() -> str:
    return str(ObjectId())
