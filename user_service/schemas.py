"""Pydantic models (schemas) for request validation and response serialization.

The wire format uses the camelCase field names stored in MongoDB; Python code
works with the snake_case attributes.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# --- Schemas de Acciones ---

class Share(BaseModel):
    """One purchase lot, as received in buy/sell requests and stored in the user document."""
    model_config = ConfigDict(populate_by_name=True)

    share_id: str = Field("", alias="shareID")
    symbol: str = ""
    company: str = ""
    quantity: int = 0
    price_bought: float = Field(0.0, alias="priceBought")
    price_sold: float = Field(0.0, alias="priceSold")
    sold_indicator: str = Field("", alias="soldIndicator")
    date_bought: str = Field("", alias="dateBought")
    date_sold: str = Field("", alias="dateSold")
    owned_or_sold: str = Field("", alias="ownedOrSold")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


# --- Schemas de Usuario ---

class UserCreate(BaseModel):
    """Schema para los datos requeridos al registrar un nuevo usuario."""
    model_config = ConfigDict(populate_by_name=True)

    username: str = ""
    email: str = Field(..., min_length=3)
    # Older clients send the plaintext password under "hash".
    password: str = Field(..., min_length=1, validation_alias=AliasChoices("password", "hash"))
    phone: str = ""
    first_name: str = Field("", alias="firstName")
    middle_name: str = Field("", alias="middleName")
    last_name: str = Field("", alias="lastName")
    account_status: str = Field("", alias="accountStatus")
    balance: float = Field(0.0, ge=0, description="Saldo inicial, no puede ser negativo.")
    created_date: Optional[str] = Field(None, alias="createdDate")


class UserResponse(BaseModel):
    """Schema devuelto al consultar un usuario (excluye el hash de la contraseña)."""
    model_config = ConfigDict(populate_by_name=True)

    username: str = ""
    email: str
    email_confirmed: bool = Field(False, alias="emailConfirmed")
    phone: str = ""
    first_name: str = Field("", alias="firstName")
    middle_name: str = Field("", alias="middleName")
    last_name: str = Field("", alias="lastName")
    account_status: str = Field("", alias="accountStatus")
    balance: float = 0.0
    created_date: str = Field("", alias="createdDate")
    shares: list[Share] = Field(default_factory=list)

    @field_validator("shares", mode="before")
    @classmethod
    def _null_shares(cls, value):
        # Documents created before the first buy may hold shares: null.
        return value or []

    @field_validator(
        "username", "phone", "first_name", "middle_name", "last_name",
        "account_status", "created_date", mode="before",
    )
    @classmethod
    def _null_strings(cls, value):
        return value or ""

    @field_validator("balance", mode="before")
    @classmethod
    def _null_balance(cls, value):
        return 0.0 if value is None else value

    @field_validator("email_confirmed", mode="before")
    @classmethod
    def _null_flag(cls, value):
        return bool(value)


# --- Schemas de Resultados de la base de datos ---

class InsertResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inserted_id: str = Field(..., alias="insertedId")


class UpdateResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    matched_count: int = Field(0, alias="matchedCount")
    modified_count: int = Field(0, alias="modifiedCount")
    upserted_id: Optional[str] = Field(None, alias="upsertedId")

    @classmethod
    def from_pymongo(cls, result) -> "UpdateResult":
        upserted = result.upserted_id
        return cls(
            matched_count=result.matched_count,
            modified_count=result.modified_count,
            upserted_id=str(upserted) if upserted is not None else None,
        )


class DeleteResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deleted_count: int = Field(0, alias="deletedCount")
