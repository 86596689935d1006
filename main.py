import logging
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from uuid import UUID
from datetime import timedelta
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Booking
    BookingResponse, ChangeRequestResponse, ChangeRequestDecisionResponse, DeletedResponse,
    # Reporting
    CalendarResponse, CalendarDayResponse,
    # Notifications
    NotificationResponse,
    # Auth
    Token, UserResponse
)
from api.dependencies import (
    get_current_active_user, get_current_admin, fake_users_db, get_user, DEMO_CUSTOMER_ID,
)
from infrastructure.config import settings
from infrastructure.security import verify_password, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES
from domain.auth import User

from application.commands import (
    AdminCreateBookingCommand, AdminUpdateBookingCommand, BookingDecisionCommand,
    BookingFilters, CreateBookingCommand, DateChangeCommand,
)
from application.invoices import Invoice, InvoiceService
from application.reporting import ReportingService, RevenueSummary
from application.services import BookingService, BookingDetails
from application.workflow import BookingNotifier
from infrastructure.gateways import RepositoryNotificationGateway, SmtpEmailGateway
from infrastructure.repositories.in_memory_repositories import (
    InMemoryUnitOfWork, InMemoryNotificationRepository, InMemoryEmailLogRepository
)
from domain.entities import Booking, BookingChangeRequest, Customer, Hotel, Tour
from domain.enums import (
    AmountPaidMode, BookingStatus, CarType, ChangeRequestStatus, Currency, ServiceStatus,
)
from domain.exceptions import InvalidStateError, NotFoundError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Booking lifecycle and financial reconciliation for tours and hotel stays",
    version="1.0.0"
)

# Initialize repositories
uow = InMemoryUnitOfWork()
notification_repo = InMemoryNotificationRepository()
email_log_repo = InMemoryEmailLogRepository()

DEMO_TOUR_ID = UUID("5d0f7a36-2a7e-4a61-9a43-1a2b3c4d5e01")
DEMO_HOTEL_ID = UUID("5d0f7a36-2a7e-4a61-9a43-1a2b3c4d5e02")

uow.seed(
    tours=[Tour(
        tour_id=DEMO_TOUR_ID,
        slug="kazbegi-day-trip",
        title_ka="ყაზბეგის ტური",
        title_en="Kazbegi Day Trip",
        title_ru="Тур в Казбеги",
    )],
    customers=[Customer(
        user_id=UUID(DEMO_CUSTOMER_ID),
        email="traveler@example.com",
        first_name="Nino",
        last_name="Beridze",
        phone="+995555000111",
    )],
    hotels=[Hotel(hotel_id=DEMO_HOTEL_ID, name="Rooms Hotel Kazbegi", email="reservations@example.com")],
)
logger.info("Demo catalogue loaded: tour %s, hotel %s", DEMO_TOUR_ID, DEMO_HOTEL_ID)

notifier = BookingNotifier(
    RepositoryNotificationGateway(notification_repo),
    SmtpEmailGateway(settings, email_log_repo),
)


# Dependency injection
def get_booking_service() -> BookingService:
    return BookingService(uow, notifier, default_currency=Currency(settings.DEFAULT_CURRENCY))

def get_reporting_service() -> ReportingService:
    return ReportingService(uow)

def get_invoice_service() -> InvoiceService:
    return InvoiceService(uow, logo_url=settings.INVOICE_LOGO_URL)

# ============================================================================
# ERROR MAPPING
# ============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})

@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": exc.message})

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.name for item in BookingStatus],
        "description": "Booking status values: PENDING, APPROVED, REJECTED, CANCELLED"
    }

@app.get("/api/enums/service-status", tags=["Enum Reference"])
async def get_service_statuses():
    """Get all ServiceStatus enum values"""
    return {
        "values": [item.name for item in ServiceStatus],
        "description": "Service fulfilment values: PENDING, IN_PROGRESS, COMPLETED"
    }

@app.get("/api/enums/change-request-status", tags=["Enum Reference"])
async def get_change_request_statuses():
    """Get all ChangeRequestStatus enum values"""
    return {
        "values": [item.name for item in ChangeRequestStatus],
        "description": "Change request values: PENDING, APPROVED, REJECTED, CANCELLED"
    }

@app.get("/api/enums/amount-paid-mode", tags=["Enum Reference"])
async def get_amount_paid_modes():
    """Get all AmountPaidMode enum values"""
    return {
        "values": [item.name for item in AmountPaidMode],
        "description": "FLAT stores the paid amount as sent, PERCENT derives it from the total"
    }

@app.get("/api/enums/car-type", tags=["Enum Reference"])
async def get_car_types():
    """Get all CarType enum values"""
    return {
        "values": [item.name for item in CarType],
        "description": "Car type values: SEDAN, MINIVAN, SUV, BUS"
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "uid": str(user.user_id), "role": user.role.value},
        expires_delta=access_token_expires,
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# CUSTOMER BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Book an active tour; the booking waits for admin approval"""
    booking = await service.create(current_user.user_id, request)
    return _booking_to_response(booking)

@app.get("/api/bookings/my", response_model=List[BookingResponse], tags=["Bookings"])
async def get_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get the caller's bookings, newest first"""
    return [_details_to_response(d) for d in await service.find_my(current_user.user_id)]

@app.get("/api/bookings/my/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_my_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get one of the caller's bookings"""
    return _details_to_response(await service.find_my_one(current_user.user_id, booking_id))

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_my_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel one of the caller's bookings"""
    booking = await service.cancel_by_user(current_user.user_id, booking_id)
    return _booking_to_response(booking)

@app.post(
    "/api/bookings/{booking_id}/change-request",
    response_model=ChangeRequestResponse,
    status_code=201,
    tags=["Bookings"],
)
async def request_date_change(
    booking_id: UUID,
    request: DateChangeCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Ask staff to move the tour date of a booking"""
    return await service.request_date_change(current_user.user_id, booking_id, request)

@app.get("/api/notifications/my", response_model=List[NotificationResponse], tags=["Notifications"])
async def get_my_notifications(current_user: User = Depends(get_current_active_user)):
    """Get the caller's notifications, newest first"""
    return await notification_repo.find_by_user_id(current_user.user_id)

# ============================================================================
# ADMIN BOOKING ENDPOINTS
# ============================================================================

@app.get("/api/admin/bookings", response_model=List[BookingResponse], tags=["Admin Bookings"])
async def list_bookings(
    filters: BookingFilters = Depends(),
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """List bookings that are not in the trash"""
    return [_details_to_response(d) for d in await service.find_all_admin(filters)]

@app.post("/api/admin/bookings", response_model=BookingResponse, status_code=201, tags=["Admin Bookings"])
async def create_admin_booking(
    request: AdminCreateBookingCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Create a booking for a guest or an existing user"""
    return _details_to_response(await service.create_admin(request))

@app.get("/api/admin/bookings/trash", response_model=List[BookingResponse], tags=["Admin Bookings"])
async def list_trash(
    filters: BookingFilters = Depends(),
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """List soft-deleted bookings"""
    return [_details_to_response(d) for d in await service.find_trash_admin(filters)]

@app.get("/api/admin/bookings/calendar", response_model=CalendarResponse, tags=["Admin Reports"])
async def get_calendar(
    month: str = Query(..., description="YYYY-MM"),
    service: ReportingService = Depends(get_reporting_service),
    current_user: User = Depends(get_current_admin)
):
    """Approved bookings per day of a month"""
    view = await service.get_calendar(month)
    return CalendarResponse(
        month=view.month,
        summary=view.summary,
        days=[
            CalendarDayResponse(
                date=day.date,
                booking_count=day.booking_count,
                bookings=[_booking_to_response(b) for b in day.bookings],
            )
            for day in view.days
        ],
    )

@app.get("/api/admin/bookings/revenue/summary", response_model=RevenueSummary, tags=["Admin Reports"])
async def get_revenue_summary(
    from_month: Optional[str] = Query(None, alias="fromMonth"),
    to_month: Optional[str] = Query(None, alias="toMonth"),
    service: ReportingService = Depends(get_reporting_service),
    current_user: User = Depends(get_current_admin)
):
    """Revenue, payments and balance per creation month"""
    return await service.get_revenue_summary(from_month, to_month)

@app.get("/api/admin/bookings/{booking_id}", response_model=BookingResponse, tags=["Admin Bookings"])
async def get_admin_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Get any booking, deleted or not"""
    return _details_to_response(await service.find_one_admin(booking_id))

@app.patch("/api/admin/bookings/{booking_id}", response_model=BookingResponse, tags=["Admin Bookings"])
async def update_admin_booking(
    booking_id: UUID,
    request: AdminUpdateBookingCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Partially update a booking"""
    return _details_to_response(await service.update_admin(booking_id, request))

@app.delete("/api/admin/bookings/{booking_id}", response_model=BookingResponse, tags=["Admin Bookings"])
async def soft_delete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Move a booking to the trash"""
    return _booking_to_response(await service.soft_delete(booking_id))

@app.get("/api/admin/bookings/{booking_id}/invoice", response_model=Invoice, tags=["Admin Reports"])
async def get_invoice(
    booking_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(get_current_admin)
):
    """Billing snapshot of a booking"""
    return await service.get_invoice(booking_id)

@app.post("/api/admin/bookings/{booking_id}/approve", response_model=BookingResponse, tags=["Admin Bookings"])
async def approve_booking(
    booking_id: UUID,
    request: BookingDecisionCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Approve a pending booking"""
    return _booking_to_response(await service.approve_booking(booking_id, request))

@app.post("/api/admin/bookings/{booking_id}/reject", response_model=BookingResponse, tags=["Admin Bookings"])
async def reject_booking(
    booking_id: UUID,
    request: BookingDecisionCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Reject a pending booking"""
    return _booking_to_response(await service.reject_booking(booking_id, request))

@app.post("/api/admin/bookings/{booking_id}/restore", response_model=BookingResponse, tags=["Admin Bookings"])
async def restore_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Bring a booking back from the trash"""
    return _booking_to_response(await service.restore(booking_id))

@app.delete("/api/admin/bookings/{booking_id}/permanent", response_model=DeletedResponse, tags=["Admin Bookings"])
async def permanently_delete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Remove a booking and its change requests for good"""
    return await service.permanent_delete(booking_id)

# ============================================================================
# ADMIN CHANGE REQUEST ENDPOINTS
# ============================================================================

@app.post(
    "/api/admin/change-requests/{change_request_id}/approve",
    response_model=ChangeRequestDecisionResponse,
    tags=["Admin Change Requests"],
)
async def approve_change_request(
    change_request_id: UUID,
    request: BookingDecisionCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Approve a date change and move the booking"""
    result = await service.approve_change_request(change_request_id, request)
    return ChangeRequestDecisionResponse(
        booking=_booking_to_response(result["booking"]),
        change_request=_change_request_to_response(result["change_request"]),
    )

@app.post(
    "/api/admin/change-requests/{change_request_id}/reject",
    response_model=ChangeRequestResponse,
    tags=["Admin Change Requests"],
)
async def reject_change_request(
    change_request_id: UUID,
    request: BookingDecisionCommand,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_admin)
):
    """Reject a date change"""
    change_request = await service.reject_change_request(change_request_id, request)
    return _change_request_to_response(change_request)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _change_request_to_response(change_request: BookingChangeRequest) -> ChangeRequestResponse:
    """Convert BookingChangeRequest entity to ChangeRequestResponse"""
    return ChangeRequestResponse(**change_request.model_dump())


def _booking_to_response(booking: Booking, change_requests: Optional[List[BookingChangeRequest]] = None) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    data = booking.model_dump()
    data["balance_due"] = booking.balance_due
    data["change_requests"] = [cr.model_dump() for cr in change_requests or []]
    return BookingResponse(**data)


def _details_to_response(details: BookingDetails) -> BookingResponse:
    return _booking_to_response(details.booking, details.change_requests)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
