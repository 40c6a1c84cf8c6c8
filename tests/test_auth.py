# tests/test_auth.py
import pytest
from pymongo.errors import PyMongoError

from user_service import accounts
from user_service.exceptions import HashError, UnauthenticatedError
from user_service.utils import get_password_hash, verify_password

from conftest import TEST_PASSWORD, FlakyCollection


# --- Credential verifier ---

def test_hash_is_not_the_plaintext_and_verifies():
    hashed = get_password_hash(TEST_PASSWORD)
    assert hashed != TEST_PASSWORD
    assert hashed.startswith("$2")
    assert verify_password(TEST_PASSWORD, hashed)
    assert not verify_password("wrongpassword", hashed)


@pytest.mark.parametrize("password", ["", "x" * 73])
def test_hash_rejects_degenerate_passwords(password):
    with pytest.raises(HashError):
        get_password_hash(password)


def test_verify_with_corrupt_hash_is_a_mismatch():
    assert verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False
    assert verify_password(TEST_PASSWORD, "") is False


# --- Authentication endpoint ---

def test_authenticate_valid_credentials(client, registered_user):
    r = client.get(f"/user/authenticate/{registered_user['email']}/{registered_user['password']}")
    assert r.status_code == 200, r.text
    assert r.json() == "User has been authenticated successfully."


def test_authenticate_wrong_password_and_unknown_user_look_the_same(client, registered_user):
    """
    Wrong password and unknown email must both answer 401 with the same message,
    so the caller cannot tell which one failed.
    """
    r_wrong = client.get(f"/user/authenticate/{registered_user['email']}/wrongpassword")
    r_absent = client.get("/user/authenticate/nobody@example.com/wrongpassword")

    assert r_wrong.status_code == 401
    assert r_absent.status_code == 401
    assert r_wrong.json() == r_absent.json()


class BrokenReads(FlakyCollection):
    def find_one(self, *args, **kwargs):
        raise PyMongoError("simulated read failure")


def test_authenticate_store_failure_is_unauthenticated(users, registered_user):
    with pytest.raises(UnauthenticatedError):
        accounts.authenticate(BrokenReads(users), registered_user["email"], TEST_PASSWORD)


# --- Registration ---

def test_register_stores_hash_and_forces_email_unconfirmed(client, users, user_payload):
    user_payload["emailConfirmed"] = True
    r = client.post("/user/register", json=user_payload)
    assert r.status_code == 201, r.text
    assert "insertedId" in r.json()

    stored = users.find_one({"email": user_payload["email"]})
    assert stored["emailConfirmed"] is False
    assert stored["hash"] != TEST_PASSWORD
    assert verify_password(TEST_PASSWORD, stored["hash"])
    assert stored["shares"] == []
    assert stored["createdDate"]


def test_register_accepts_legacy_hash_field(client, user_payload):
    user_payload["hash"] = user_payload.pop("password")
    r = client.post("/user/register", json=user_payload)
    assert r.status_code == 201, r.text
    r_auth = client.get(f"/user/authenticate/{user_payload['email']}/{TEST_PASSWORD}")
    assert r_auth.status_code == 200


def test_register_duplicate_email(client, users, registered_user, user_payload):
    """
    Verifica que no se puede registrar un usuario con un email existente
    y que la cuenta original no cambia.
    """
    before = users.find_one({"email": registered_user["email"]})

    duplicate = {**user_payload, "password": "newpassword", "balance": 999.0, "username": "other"}
    r = client.post("/user/register", json=duplicate)

    assert r.status_code == 400, f"Esperado 400 pero se obtuvo {r.status_code}"
    assert r.json()["detail"] == "Email already in use."
    assert users.count_documents({"email": registered_user["email"]}) == 1
    assert users.find_one({"email": registered_user["email"]}) == before


def test_register_duplicate_email_wins_over_bad_password(client, users, registered_user, user_payload):
    """
    Un email ya registrado responde 400 aunque la contraseña no se pueda hashear:
    la existencia se comprueba antes de calcular el hash.
    """
    duplicate = {**user_payload, "password": "p" * 100}
    r = client.post("/user/register", json=duplicate)

    assert r.status_code == 400, f"Esperado 400 pero se obtuvo {r.status_code}"
    assert r.json()["detail"] == "Email already in use."
    assert users.count_documents({"email": registered_user["email"]}) == 1


@pytest.mark.parametrize("body", [
    {"password": TEST_PASSWORD},
    {"email": "someone@example.com"},
    {"email": "someone@example.com", "password": TEST_PASSWORD, "balance": -5},
])
def test_register_malformed_body(client, body):
    r = client.post("/user/register", json=body)
    assert r.status_code == 400, r.text


def test_register_oversized_password_is_a_hash_error(client, user_payload):
    user_payload["password"] = "p" * 100
    r = client.post("/user/register", json=user_payload)
    assert r.status_code == 500
    assert "hash" in r.json()["detail"].lower()


# --- Delete ---

def test_delete_requires_authentication(client, users, registered_user):
    email = registered_user["email"]

    r_bad = client.delete(f"/user/delete/{email}/wrongpassword")
    assert r_bad.status_code == 401
    assert users.count_documents({"email": email}) == 1

    r_ok = client.delete(f"/user/delete/{email}/{registered_user['password']}")
    assert r_ok.status_code == 200, r_ok.text
    assert r_ok.json() == {"deletedCount": 1}
    assert users.count_documents({"email": email}) == 0


def test_delete_unknown_account_is_unauthenticated(client):
    r = client.delete(f"/user/delete/nobody@example.com/{TEST_PASSWORD}")
    assert r.status_code == 401, f"Esperado 401 pero se obtuvo {r.status_code}"
