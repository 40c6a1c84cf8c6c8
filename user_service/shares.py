"""Share transaction engine: buy and sell lots against the user's balance.

A transaction is two separate single-document writes: the balance adjustment
first, then the change to the embedded shares list. When the second write
fails the balance adjustment is reversed once; if that reversal fails too the
account is left inconsistent and the failure is logged at CRITICAL level. The
error returned to the caller is always the one from the share write.
"""

import logging
import math

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from user_service import ledger, models, schemas
from user_service.exceptions import (AlreadySoldError, InsufficientFundsError,
                                     InvalidInputError, NotFoundError,
                                     ShareNotFoundError, StoreError,
                                     UserServiceError)
from user_service.models import BalanceDirection, ShareStatus, SoldIndicator, TransactionType
from user_service.utils import now_timestamp

logger = logging.getLogger(__name__)


def _check_price(value: float, name: str) -> None:
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"{name} must be a non-negative number.")


def _compensate(users: Collection, email: str, amount: float, applied: BalanceDirection) -> None:
    """Reverse a balance adjustment once. Never raises."""
    try:
        ledger.adjust_balance(users, email, amount, applied.reverse())
        logger.warning(f"Compensated {applied.value} of {amount} on the balance of {email}.")
    except UserServiceError as e:
        logger.critical(
            f"Compensation failed for {email}: {applied.value} of {amount} was not reversed ({e.detail})."
        )


def find_share(users: Collection, email: str, share_id: str) -> schemas.Share:
    """Return the first lot of the user with the given shareID."""
    try:
        document = users.find_one(models.by_email(email), {"_id": 0, models.SHARES: 1})
    except PyMongoError as e:
        logger.error(f"Unable to get the shares of user {email}: {e}", exc_info=True)
        raise StoreError("Unable to get the shares of the user.") from e
    if document is None:
        raise NotFoundError()

    for share in document.get(models.SHARES) or []:
        if share.get(models.SHARE_ID) == share_id:
            return schemas.Share.model_validate(share)
    logger.warning(f"Share {share_id} not found for user {email}.")
    raise ShareNotFoundError()


def buy(users: Collection, email: str, share: schemas.Share) -> schemas.UpdateResult:
    """
    Debit price * quantity and append a new open lot to the user's shares.

    Raises:
        InvalidInputError: quantity < 1 or a negative price.
        InsufficientFundsError: the balance does not cover the cost. Nothing is written.
        NotFoundError / StoreError: from the balance read or one of the writes.
    """
    if share.quantity < 1:
        raise InvalidInputError("quantity must be at least 1.")
    _check_price(share.price_bought, "priceBought")

    balance = ledger.get_balance(users, email)
    cost = share.price_bought * share.quantity
    if balance < cost:
        logger.error(f"Insufficient balance for {email} to purchase the shares: balance={balance}, cost={cost}")
        raise InsufficientFundsError()

    ledger.adjust_balance(users, email, cost, BalanceDirection.DEBIT)

    lot = share.model_copy(update={
        "share_id": models.new_share_id(),
        "sold_indicator": SoldIndicator.OPEN.value,
        "date_bought": now_timestamp(),
        "date_sold": "",
        "price_sold": 0.0,
        "owned_or_sold": ShareStatus.OWNED.value,
    })

    try:
        current = users.find_one(models.by_email(email), {"_id": 0, models.SHARES: 1})
        if current is not None and current.get(models.SHARES) is None:
            # No list yet (or stored as null): create it with the first lot.
            update = {"$set": {models.SHARES: [lot.to_document()]}}
        else:
            update = {"$push": {models.SHARES: lot.to_document()}}
        result = users.update_one(models.by_email(email), update)
    except PyMongoError as e:
        logger.error(f"Unable to save bought share for {email}: {e}", exc_info=True)
        _compensate(users, email, cost, BalanceDirection.DEBIT)
        raise StoreError("Unable to save bought share.") from e

    if result.matched_count == 0:
        logger.error(f"Unable to save bought share: user {email} disappeared during the purchase.")
        _compensate(users, email, cost, BalanceDirection.DEBIT)
        raise NotFoundError()

    logger.info(f"User {email} bought {lot.quantity} x {lot.symbol} at {lot.price_bought} (shareID={lot.share_id}).")
    return schemas.UpdateResult.from_pymongo(result)


def sell(users: Collection, email: str, share: schemas.Share) -> schemas.UpdateResult:
    """
    Close an open lot: credit priceSold * the lot's quantity and mark it sold in place.

    Raises:
        InvalidInputError: missing shareID, missing or negative priceSold.
        ShareNotFoundError: the user has no lot with that shareID.
        AlreadySoldError: the lot is already closed.
        NotFoundError / StoreError: from the lookup or one of the writes.
    """
    if not share.share_id:
        raise InvalidInputError("shareID is required to sell.")
    if "price_sold" not in share.model_fields_set:
        # Closing a lot cannot be undone, so a missing price is never read as 0.
        raise InvalidInputError("priceSold is required to sell.")
    _check_price(share.price_sold, "priceSold")

    owned = find_share(users, email, share.share_id)
    if owned.sold_indicator == SoldIndicator.CLOSED.value:
        logger.warning(f"Share {share.share_id} of {email} was already sold.")
        raise AlreadySoldError()

    proceeds = share.price_sold * owned.quantity
    ledger.adjust_balance(users, email, proceeds, BalanceDirection.CREDIT)

    prefix = f"{models.SHARES}.$."
    update = {"$set": {
        prefix + models.OWNED_OR_SOLD: ShareStatus.SOLD.value,
        prefix + models.DATE_SOLD: now_timestamp(),
        prefix + models.SOLD_INDICATOR: SoldIndicator.CLOSED.value,
        prefix + models.PRICE_SOLD: share.price_sold,
    }}
    # The positional operator updates the first lot matching the shareID.
    selector = {models.EMAIL: email, f"{models.SHARES}.{models.SHARE_ID}": share.share_id}
    try:
        result = users.update_one(selector, update)
    except PyMongoError as e:
        logger.error(f"Unable to save sold share for {email}: {e}", exc_info=True)
        _compensate(users, email, proceeds, BalanceDirection.CREDIT)
        raise StoreError("Unable to save sold share.") from e

    if result.matched_count == 0:
        logger.error(f"Unable to save sold share: {share.share_id} of {email} disappeared during the sale.")
        _compensate(users, email, proceeds, BalanceDirection.CREDIT)
        raise ShareNotFoundError()

    logger.info(f"User {email} sold share {share.share_id} ({owned.quantity} x {owned.symbol}) at {share.price_sold}.")
    return schemas.UpdateResult.from_pymongo(result)


def execute(users: Collection, email: str, transaction_type: str, share: schemas.Share) -> schemas.UpdateResult:
    """Dispatch a share transaction by its type ("buy" or "sell")."""
    try:
        kind = TransactionType(transaction_type.lower())
    except ValueError:
        raise InvalidInputError(
            f"Unknown transaction type '{transaction_type}'. Expected 'buy' or 'sell'."
        ) from None
    try:
        if kind is TransactionType.BUY:
            return buy(users, email, share)
        return sell(users, email, share)
    except NotFoundError as e:
        # Share transactions answer 400 for every failure, unknown users included.
        raise InvalidInputError(e.detail) from e
