"""Account store: CRUD over the user documents, keyed by email."""

import logging
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from user_service import models, schemas
from user_service.exceptions import (ConflictError, NotFoundError, StoreError,
                                     UnauthenticatedError)
from user_service.utils import get_password_hash, now_timestamp, verify_password

logger = logging.getLogger(__name__)


def email_exists(users: Collection, email: str) -> bool:
    """
    Count-based existence check.

    Fails closed: if the lookup itself fails the email is reported as taken,
    so a store hiccup can never let a duplicate registration through.
    """
    logger.info(f"Looking up user with email: {email}")
    try:
        number = users.count_documents(models.by_email(email), limit=1)
    except PyMongoError as e:
        logger.error(f"Encountered error while looking up email {email}: {e}", exc_info=True)
        return True
    if number:
        logger.info(f"Email {email} already exists.")
        return True
    return False


def create_user(users: Collection, user: schemas.UserCreate) -> schemas.InsertResult:
    """
    Save a new user document. emailConfirmed is always stored as false.

    The password is hashed only once the email is known to be free.

    Raises:
        ConflictError: the email is already registered (or the check could not be completed).
        HashError: the password could not be hashed.
        StoreError: the insert failed.
    """
    if email_exists(users, user.email):
        logger.warning(f"Registration failed: Email {user.email} already exists.")
        raise ConflictError()

    password_hash = get_password_hash(user.password)

    document = {
        "username": user.username,
        models.EMAIL: user.email,
        models.EMAIL_CONFIRMED: False,
        "phone": user.phone,
        models.HASH: password_hash,
        "firstName": user.first_name,
        "middleName": user.middle_name,
        "lastName": user.last_name,
        models.ACCOUNT_STATUS: user.account_status,
        models.BALANCE: float(user.balance),
        models.CREATED_DATE: user.created_date or now_timestamp(),
        models.SHARES: [],
    }
    try:
        result = users.insert_one(document)
    except DuplicateKeyError as e:
        logger.warning(f"Registration failed: Email {user.email} already exists ({e}).")
        raise ConflictError() from e
    except PyMongoError as e:
        logger.error(f"Encountered error while saving user data for {user.email}: {e}", exc_info=True)
        raise StoreError("Error while saving the member to db.") from e

    logger.info(f"Successfully saved user data - insertedId: {result.inserted_id}")
    return schemas.InsertResult(inserted_id=str(result.inserted_id))


def _find_one(users: Collection, email: str, projection: Optional[dict] = None) -> dict:
    try:
        document = users.find_one(models.by_email(email), projection)
    except PyMongoError as e:
        logger.error(f"Unable to read user {email}: {e}", exc_info=True)
        raise StoreError() from e
    if document is None:
        logger.warning(f"User {email} does not exist.")
        raise NotFoundError()
    return document


def get_user(users: Collection, email: str) -> schemas.UserResponse:
    logger.info(f"Searching user with email: {email}")
    document = _find_one(users, email, {"_id": 0, models.HASH: 0})
    logger.info("Successfully retrieved user data")
    return schemas.UserResponse.model_validate(document)


def get_user_hash(users: Collection, email: str) -> str:
    """Fetch only the password hash of the user."""
    document = _find_one(users, email, {"_id": 0, models.EMAIL: 1, models.HASH: 1})
    return document.get(models.HASH) or ""


def get_user_id(users: Collection, email: str) -> str:
    """Return the store-internal id of the user as a string."""
    document = _find_one(users, email, {"_id": 1})
    return str(document["_id"])


def update_status(users: Collection, email: str, account_status: str) -> schemas.UpdateResult:
    """Overwrite accountStatus. Any value is accepted."""
    try:
        result = users.update_one(
            models.by_email(email), {"$set": {models.ACCOUNT_STATUS: account_status}}
        )
    except PyMongoError as e:
        logger.error(f"Unable to update the status of user {email}: {e}", exc_info=True)
        raise StoreError("Unable to update the status of user.") from e
    logger.info(f"Status of user {email} set to '{account_status}'.")
    return schemas.UpdateResult.from_pymongo(result)


def delete_user(users: Collection, email: str) -> schemas.DeleteResult:
    try:
        result = users.delete_one(models.by_email(email))
    except PyMongoError as e:
        logger.error(f"Unable to delete user {email} from db: {e}", exc_info=True)
        raise StoreError("Unable to delete user from db.") from e
    logger.info(f"User {email} has been deleted successfully.")
    return schemas.DeleteResult(deleted_count=result.deleted_count)


def authenticate(users: Collection, email: str, password: str) -> None:
    """
    Check the password of a user.

    Raises:
        UnauthenticatedError: the user is unknown, the lookup failed or the
            password does not match. The three cases are indistinguishable.
    """
    try:
        password_hash = get_user_hash(users, email)
    except (NotFoundError, StoreError) as e:
        logger.warning(f"Unable to get user hash for {email}: {e.detail}")
        raise UnauthenticatedError() from e

    if not verify_password(password, password_hash):
        logger.warning(f"Unable to authenticate the user {email}")
        raise UnauthenticatedError()
    logger.info(f"User {email} has been authenticated successfully.")
