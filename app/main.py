"""
Aid Ledger - HTTP API

FastAPI application over the ledger components.

Run with:
    aidledger-server
or
    uvicorn app.main:app --port 3000

Identity comes from the user-id header. Read responses are wrapped as
{"success": true, "data": ...}; every failure is {"success": false,
"message": ...} with the status code of its error class.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from aidledger import __version__
from aidledger.audit import configure_logging
from aidledger.config import get_settings, validate_all_settings
from aidledger.ledger import (
    AuthenticationError,
    InsufficientFundsError,
    LedgerError,
    PermissionDeniedError,
    ValidationError,
)
from aidledger.models import (
    Account,
    Allocation,
    Beneficiary,
    BeneficiaryRequest,
    DonationRequest,
    SignupRequest,
    utcnow,
)
from aidledger.orchestrator import LedgerComponents, create_app_components
from aidledger.queries import donation_to_dict
from aidledger.services.storage import DuplicateError, NotFoundError, StorageError

logger = structlog.get_logger(__name__)


# =============================================================================
# REQUEST BODIES
# =============================================================================

class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    is_admin: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_admin", "isAdmin"),
    )


class AllocationRequest(BaseModel):
    beneficiary_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("beneficiary_id", "beneficiaryId"),
    )
    amount: Optional[int] = None
    support_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("support_type", "supportType"),
    )
    donation_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("donation_id", "donationId"),
    )


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


# =============================================================================
# SERIALIZATION
# =============================================================================

def beneficiary_to_dict(beneficiary: Beneficiary) -> dict:
    return {
        "id": beneficiary.id,
        "name": beneficiary.name,
        "age": beneficiary.age,
        "gender": beneficiary.gender,
        "phone": beneficiary.phone,
        "location": beneficiary.location,
        "supportType": beneficiary.support_type.value,
        "status": beneficiary.status.value,
        "supportReceived": beneficiary.support_received,
        "notes": beneficiary.notes,
        "createdAt": beneficiary.created_at.isoformat(),
    }


def allocation_to_dict(allocation: Allocation) -> dict:
    return {
        "id": allocation.id,
        "beneficiaryId": allocation.beneficiary_id,
        "donationId": allocation.donation_id,
        "amount": allocation.amount,
        "supportType": allocation.support_type.value,
        "allocatedBy": allocation.allocated_by,
        "status": allocation.status.value,
    }


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_components(request: Request) -> LedgerComponents:
    return request.app.state.components


def caller_id(user_id: Optional[str] = Header(default=None, alias="user-id")) -> Optional[int]:
    if user_id is None or user_id == "":
        return None
    try:
        return int(user_id)
    except ValueError:
        raise AuthenticationError("Invalid user") from None


async def current_account(
    account_id: Optional[int] = Depends(caller_id),
    components: LedgerComponents = Depends(get_components),
) -> Account:
    return await components.accounts.authenticate(account_id)


async def admin_account(
    account_id: Optional[int] = Depends(caller_id),
    components: LedgerComponents = Depends(get_components),
) -> Account:
    return await components.accounts.require_admin(account_id)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        return _failure(400, exc.message, errors=exc.issues_as_dicts())

    @app.exception_handler(InsufficientFundsError)
    async def _insufficient(request: Request, exc: InsufficientFundsError):
        return _failure(400, exc.message, available=exc.available)

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(request: Request, exc: AuthenticationError):
        return _failure(401, exc.message)

    @app.exception_handler(PermissionDeniedError)
    async def _forbidden(request: Request, exc: PermissionDeniedError):
        return _failure(403, exc.message)

    @app.exception_handler(LedgerError)
    async def _ledger(request: Request, exc: LedgerError):
        return _failure(400, exc.message)

    @app.exception_handler(DuplicateError)
    async def _duplicate(request: Request, exc: DuplicateError):
        return _failure(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _failure(404, str(exc))

    @app.exception_handler(StorageError)
    async def _storage(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        await request.app.state.components.audit_logger.log_error(
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path},
        )
        return _failure(500, "Database error occurred")

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return _failure(400, "Invalid request", errors=errors)

    @app.exception_handler(StarletteHTTPException)
    async def _http(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _failure(404, "Route not found")
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return _failure(500, "Internal server error")


# =============================================================================
# ROUTES
# =============================================================================

def register_routes(app: FastAPI) -> None:
    # Auth

    @app.post("/api/auth/signup")
    async def signup(
        body: SignupRequest,
        components: LedgerComponents = Depends(get_components),
    ):
        account = await components.accounts.signup(body)
        return {
            "success": True,
            "message": "Account created successfully",
            "user": account.to_public_dict(),
        }

    @app.post("/api/auth/login")
    async def login(
        body: LoginRequest,
        components: LedgerComponents = Depends(get_components),
    ):
        account = await components.accounts.login(
            body.email,
            body.password,
            require_admin=body.is_admin,
        )
        return {
            "success": True,
            "message": "Login successful",
            "user": account.to_public_dict(),
        }

    # Donations

    @app.post("/api/donations/create")
    async def create_donation(
        body: DonationRequest,
        components: LedgerComponents = Depends(get_components),
    ):
        receipt = await components.donations.record(body)
        donation = receipt.donation
        return {
            "success": receipt.success,
            "message": receipt.message,
            "donation": {
                "id": donation.id,
                "amount": donation.amount,
                "purpose": donation.purpose.value,
                "transactionId": donation.transaction_id,
                "status": donation.status.value,
            },
        }

    @app.get("/api/donations/user/{account_id}")
    async def donations_for_user(
        account_id: int,
        components: LedgerComponents = Depends(get_components),
    ):
        return {"success": True, "data": await components.history.for_account(account_id)}

    @app.get("/api/donations/all")
    async def all_donations(
        admin: Account = Depends(admin_account),
        components: LedgerComponents = Depends(get_components),
    ):
        return {"success": True, "data": await components.history.recent()}

    @app.post("/api/donations/{donation_id}/status")
    async def update_donation_status(
        donation_id: int,
        body: StatusUpdateRequest,
        admin: Account = Depends(admin_account),
        components: LedgerComponents = Depends(get_components),
    ):
        donation = await components.donations.update_status(
            donation_id,
            body.status or "",
            actor_id=admin.id,
        )
        return {
            "success": True,
            "message": "Donation status updated",
            "donation": donation_to_dict(donation),
        }

    # Beneficiaries

    @app.post("/api/beneficiaries/create")
    async def create_beneficiary(
        body: BeneficiaryRequest,
        admin: Account = Depends(admin_account),
        components: LedgerComponents = Depends(get_components),
    ):
        beneficiary = await components.beneficiaries.register(body, actor_id=admin.id)
        return {
            "success": True,
            "message": "Beneficiary created successfully",
            "beneficiary": beneficiary_to_dict(beneficiary),
        }

    @app.get("/api/beneficiaries/all")
    async def all_beneficiaries(
        components: LedgerComponents = Depends(get_components),
    ):
        beneficiaries = await components.beneficiaries.list_all()
        return {"success": True, "data": [beneficiary_to_dict(b) for b in beneficiaries]}

    # Funds

    @app.post("/api/funds/allocate")
    async def allocate_funds(
        body: AllocationRequest,
        admin: Account = Depends(admin_account),
        components: LedgerComponents = Depends(get_components),
    ):
        allocation = await components.allocations.allocate(
            beneficiary_id=body.beneficiary_id,
            amount=body.amount,
            support_type=body.support_type,
            allocating_account_id=admin.id,
            donation_id=body.donation_id,
        )
        return {
            "success": True,
            "message": "Funds allocated successfully",
            "allocation": allocation_to_dict(allocation),
        }

    @app.get("/api/funds/summary")
    async def fund_summary(
        components: LedgerComponents = Depends(get_components),
    ):
        summary = await components.funds.summary()
        return {
            "success": True,
            "data": {
                "totalDonated": summary.total_donated,
                "totalAllocated": summary.total_allocated,
                "available": summary.available,
            },
        }

    # Impact

    @app.get("/api/impact/user/{account_id}")
    async def impact_for_user(
        account_id: int,
        components: LedgerComponents = Depends(get_components),
    ):
        impact = await components.impact.impact_for(account_id)
        return {
            "success": True,
            "data": {
                "totalDonated": impact.total_donated,
                "donationCount": impact.donation_count,
                "beneficiariesHelped": impact.beneficiaries_helped,
            },
        }

    # Audit

    @app.get("/api/audit/recent")
    async def recent_audit_events(
        limit: int = Query(default=100, ge=1, le=500),
        admin: Account = Depends(admin_account),
        components: LedgerComponents = Depends(get_components),
    ):
        storage = components.audit_logger.storage
        events = await storage.get_recent_events(limit) if storage else []
        return {"success": True, "data": [e.to_log_dict() for e in events]}

    @app.get("/api/health")
    async def health():
        organization = get_settings().payments.organization_name
        return {
            "success": True,
            "message": f"{organization} API is running",
            "version": __version__,
            "timestamp": utcnow().isoformat(),
        }


# =============================================================================
# APPLICATION
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    owned = app.state.components is None
    if owned:
        settings = get_settings()
        configure_logging(settings.app.log_level)
        app.state.components = create_app_components(settings)
        await app.state.components.startup()
    yield
    if owned:
        await app.state.components.shutdown()
        app.state.components = None


def create_app(components: Optional[LedgerComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Already started components. When None, the lifespan
            builds them from settings and starts them.
    """
    app = FastAPI(title="Aid Ledger", version=__version__, lifespan=lifespan)
    app.state.components = components
    register_error_handlers(app)
    register_routes(app)
    return app


app = create_app()


def run() -> None:
    """Console entry point: check settings, then serve the API with uvicorn."""
    failed = {
        name: error
        for name, error in validate_all_settings().items()
        if name.endswith("_error")
    }
    if failed:
        configure_logging()
        logger.error("invalid_settings", **failed)
        raise SystemExit(1)

    settings = get_settings().app
    configure_logging(settings.log_level)
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
