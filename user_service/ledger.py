"""Balance ledger: reads and adjusts the single balance field of a user.

By default an adjustment re-reads the current balance and overwrites it with
``current +/- amount``. Two concurrent adjustments of the same account can both
read the same value and one of them is lost; callers that need exact sequencing
must serialize per account. Setting ATOMIC_BALANCE_UPDATES switches to the
store's ``$inc`` operator, which is applied atomically on the document.
"""

import logging
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from user_service import config, models
from user_service.exceptions import NotFoundError, StoreError
from user_service.models import BalanceDirection

logger = logging.getLogger(__name__)


def get_balance(users: Collection, email: str) -> float:
    try:
        document = users.find_one(models.by_email(email), {"_id": 0, models.BALANCE: 1})
    except PyMongoError as e:
        logger.error(f"Unable to get the balance of user {email}: {e}", exc_info=True)
        raise StoreError("Unable to get current balance.") from e
    if document is None:
        logger.warning(f"Unable to get the balance: user {email} does not exist.")
        raise NotFoundError()
    return float(document.get(models.BALANCE) or 0.0)


def adjust_balance(
    users: Collection,
    email: str,
    amount: float,
    direction: BalanceDirection,
    atomic: Optional[bool] = None,
) -> float:
    """
    Credit or debit the balance by ``amount`` and return the new balance.

    No floor check is done here; a debit can leave the balance negative.

    Raises:
        NotFoundError: the user does not exist.
        StoreError: the read or the write failed.
    """
    if atomic is None:
        atomic = config.ATOMIC_BALANCE_UPDATES
    if atomic:
        return _increment_balance(users, email, amount, direction)

    current = get_balance(users, email)
    new_balance = direction.apply(current, amount)
    try:
        result = users.update_one(models.by_email(email), {"$set": {models.BALANCE: new_balance}})
    except PyMongoError as e:
        logger.error(f"Unable to save the balance of user {email}: {e}", exc_info=True)
        raise StoreError("Unable to update balance.") from e
    if result.matched_count == 0:
        raise NotFoundError()

    logger.info(f"Balance of {email} updated ({direction.value} {amount}): {current} -> {new_balance}")
    return new_balance


def _increment_balance(users: Collection, email: str, amount: float, direction: BalanceDirection) -> float:
    delta = amount if direction is BalanceDirection.CREDIT else -amount
    try:
        result = users.update_one(models.by_email(email), {"$inc": {models.BALANCE: delta}})
    except PyMongoError as e:
        logger.error(f"Unable to increment the balance of user {email}: {e}", exc_info=True)
        raise StoreError("Unable to update balance.") from e
    if result.matched_count == 0:
        raise NotFoundError()

    new_balance = get_balance(users, email)
    logger.info(f"Balance of {email} incremented by {delta}: now {new_balance}")
    return new_balance
