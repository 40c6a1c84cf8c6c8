"""User Service: user accounts, credentials, balance and share transactions over MongoDB."""

import logging
import math
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pymongo.collection import Collection

from user_service import accounts, config, db, schemas, shares
from user_service.exceptions import InvalidInputError, UserServiceError, error_to_http
from user_service.ledger import adjust_balance
from user_service.models import BalanceDirection

# Configura logger
logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Create the single MongoDB client at startup and close it on shutdown."""
    client = db.create_client()
    if db.ping(client):
        logger.info("Connected to mongodb...")
    fastapi_app.state.mongo_client = client
    fastapi_app.state.users = db.get_users_collection_from_client(client)

    yield

    client.close()
    logger.info("MongoDB client closed.")


# Inicializa FastAPI
app = FastAPI(
    title="User Service",
    description="Handles user registration, authentication, balance and share transactions.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter(
    "user_service_requests_total",
    "Total requests processed by User Service",
    ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "user_service_request_latency_seconds",
    "Request latency in seconds for User Service",
    ["endpoint"]
)


# --- Middleware para Métricas ---
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = None
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as exc:
        logger.error(f"Unhandled exception during request processing: {exc}", exc_info=True)
        response = Response("Internal Server Error", status_code=500)
    finally:
        latency = time.time() - start_time
        # Use the route template so emails and passwords never become label values.
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        final_status_code = getattr(response, 'status_code', status_code)

        REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=final_status_code
        ).inc()

    return response


# --- Manejo de errores ---
@app.exception_handler(UserServiceError)
async def user_service_error_handler(request: Request, exc: UserServiceError):
    status_code, detail = error_to_http(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Malformed request on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


# --- Endpoints de Salud y Métricas ---
@app.get("/metrics", tags=["Monitoring"])
def metrics():
    """Exposes application metrics for Prometheus."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", tags=["Monitoring"])
def health_check():
    """Performs a basic health check of the service."""
    return {"status": "ok", "service": "user_service"}


# --- Endpoints de API ---

@app.post("/user/register", response_model=schemas.InsertResult, status_code=status.HTTP_201_CREATED, tags=["Users"])
def register(user: schemas.UserCreate, users: Collection = Depends(db.get_users)):
    """
    Registers a new user. The plaintext password is replaced by its bcrypt hash
    before the document is saved. A taken email (or a failed check) answers 400.
    """
    logger.info(f"Adding new user: {user.email}")
    return accounts.create_user(users, user)


@app.get("/user/authenticate/{email}/{password}", tags=["Authentication"])
def authenticate_user(email: str, password: str, users: Collection = Depends(db.get_users)):
    logger.info("Attempting to authenticate user.")
    accounts.authenticate(users, email, password)
    return "User has been authenticated successfully."


@app.delete("/user/delete/{email}/{password}", response_model=schemas.DeleteResult, tags=["Users"])
def delete_user(email: str, password: str, users: Collection = Depends(db.get_users)):
    """Deletes the account after checking the password. Shares go with the document."""
    logger.info("Attempting to delete user from db.")
    accounts.authenticate(users, email, password)
    return accounts.delete_user(users, email)


@app.put("/user/update/emailconfirmation/{email}", tags=["Users"])
def confirm_email(email: str):
    """Email confirmation is not available; emailConfirmed stays false."""
    raise HTTPException(status.HTTP_501_NOT_IMPLEMENTED, detail="Email confirmation is not implemented.")


@app.put("/user/update/addbalance/{email}/{amount}", tags=["Balance"])
def add_to_balance(email: str, amount: str, users: Collection = Depends(db.get_users)):
    try:
        value = float(amount)
    except ValueError:
        raise InvalidInputError("Failed while parsing the amount to float.") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError("The amount to add must be a positive number.")

    adjust_balance(users, email, value, BalanceDirection.CREDIT)
    return "Amount has been added to the balance successfully."


@app.put("/user/update/{email}/{account_status}", response_model=schemas.UpdateResult, tags=["Users"])
def update_user_status(email: str, account_status: str, users: Collection = Depends(db.get_users)):
    if not accounts.email_exists(users, email):
        raise InvalidInputError("Unable to update. User does not exist.")
    return accounts.update_status(users, email, account_status)


@app.put("/user/share/{email}/{transaction_type}", response_model=schemas.UpdateResult, tags=["Shares"])
def save_share(
    email: str,
    transaction_type: str,
    share: schemas.Share,
    users: Collection = Depends(db.get_users),
):
    """Buys a new lot or sells an owned one, depending on transaction_type ("buy" / "sell")."""
    logger.info(f"Share transaction '{transaction_type}' for {email}")
    return shares.execute(users, email, transaction_type, share)


@app.get("/user/{email}", response_model=schemas.UserResponse, tags=["Users"])
def get_user(email: str, users: Collection = Depends(db.get_users)):
    return accounts.get_user(users, email)


def run():
    """Run the server (uvicorn)."""
    uvicorn.run("user_service.main:app", host=config.SERVICE_HOST, port=config.SERVICE_PORT)
