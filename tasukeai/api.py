import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from tasukeai.advisor import PolicyAdvisor
from tasukeai.config import Config, get_config
from tasukeai.database import (
    StoreWriteError,
    generate_seed_users,
    get_db,
    load_sample_data,
)
from tasukeai.export import build_export_rows, export_filename, render_csv, total_allowance
from tasukeai.logging_setup import log_admin_action, log_api_call, setup_logging
from tasukeai.marketplace import (
    AlreadyAppliedError,
    AuthenticationError,
    MarketplaceError,
    NotAnApplicantError,
    ShiftNotFoundError,
    ShiftNotOpenError,
    UserNotFoundError,
    apply_to_shift,
    approve_applicant,
    authenticate,
    create_shift,
    delete_shift,
    search_users,
)
from tasukeai.models import (
    Department,
    PolicyDraft,
    RangeMode,
    Shift,
    ShiftCreate,
    User,
    UserRole,
    UserUpdate,
)
from tasukeai.schedule import (
    count_by_department,
    dates_in_range,
    filter_shifts,
    group_by_date,
    move_date,
    shift_stats,
)
from tasukeai.timeline import DayTimeline, build_day_timeline
from tasukeai.timeutil import FormatError, parse_iso_date

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_STATUS: dict[type[MarketplaceError], int] = {
    ShiftNotFoundError: status.HTTP_404_NOT_FOUND,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    ShiftNotOpenError: status.HTTP_409_CONFLICT,
    AlreadyAppliedError: status.HTTP_409_CONFLICT,
    NotAnApplicantError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


class UserView(BaseModel):
    """User as shown to admins; the password itself is never returned."""

    id: str
    name: str
    department: Department
    role: UserRole
    has_password: bool

    @classmethod
    def of(cls, user: User) -> "UserView":
        return cls(
            id=user.id,
            name=user.name,
            department=user.department,
            role=user.role,
            has_password=bool(user.password),
        )


class LoginRequest(BaseModel):
    user_id: str
    password: str


class ApproveRequest(BaseModel):
    user_id: str


class PolicyAdviceRequest(BaseModel):
    title: str = "社内副業規程ドラフト"
    organization_context: str
    concern: str


class DateGroup(BaseModel):
    date: str
    shifts: list[Shift]


class CalendarDay(BaseModel):
    date: str
    counts: dict[Department, int]


def _http_error(e: MarketplaceError) -> HTTPException:
    return HTTPException(
        status_code=_ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
        detail=str(e),
    )


def _store_unavailable(e: StoreWriteError) -> HTTPException:
    logger.error(f"Store write failed: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(e),
    )


def _display_date(value: str | None) -> str:
    if value is None:
        return date.today().isoformat()
    try:
        parse_iso_date(value)
    except FormatError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e
    return value


def get_settings(request: Request) -> type[Config]:
    return request.app.state.settings


def current_user(x_user_id: str | None = Header(default=None)) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    user = get_db().snapshot.find_user(x_user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"User {x_user_id} not found",
        )
    return user


def require_admin(user: User = Depends(current_user)) -> User:
    if user.role != UserRole.HR_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="HR admin role required",
        )
    return user


async def seed_users(settings: type[Config]) -> bool:
    """Bulk-create the staff roster when the user store is empty."""
    users = generate_seed_users(
        settings.SEED_ADMINS, settings.SEED_NURSES, settings.SEED_ASSISTANTS
    )
    return await get_db().user_store.seed_if_empty(users)


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/login")
async def login(body: LoginRequest) -> UserView:
    try:
        user = authenticate(get_db().snapshot, body.user_id, body.password)
    except AuthenticationError as e:
        logger.warning(f"Login failed | User: {body.user_id}")
        raise _http_error(e) from e
    log_api_call("/login", user.id)
    return UserView.of(user)


@router.get("/shifts")
async def list_shifts(
    on: str | None = Query(None, alias="date"),
    mode: RangeMode = Query(RangeMode.DAY, alias="range"),
) -> list[Shift]:
    display_date = _display_date(on)
    return filter_shifts(get_db().snapshot.shifts, display_date, mode)


@router.get("/shifts/grouped")
async def list_shifts_grouped(
    on: str | None = Query(None, alias="date"),
    mode: RangeMode = Query(RangeMode.WEEK, alias="range"),
) -> list[DateGroup]:
    display_date = _display_date(on)
    visible = filter_shifts(get_db().snapshot.shifts, display_date, mode)
    return [
        DateGroup(date=day, shifts=shifts)
        for day, shifts in group_by_date(visible).items()
    ]


@router.get("/timeline")
async def day_timeline(
    on: str | None = Query(None, alias="date"),
) -> DayTimeline:
    display_date = _display_date(on)
    return build_day_timeline(get_db().snapshot.shifts, display_date)


@router.get("/calendar")
async def calendar(
    on: str | None = Query(None, alias="date"),
    mode: RangeMode = Query(RangeMode.WEEK, alias="range"),
) -> list[CalendarDay]:
    display_date = _display_date(on)
    groups = group_by_date(filter_shifts(get_db().snapshot.shifts, display_date, mode))
    return [
        CalendarDay(date=day, counts=count_by_department(groups.get(day, [])))
        for day in dates_in_range(display_date, mode)
    ]


@router.get("/dates/move")
async def page_date(
    on: str = Query(alias="date"),
    direction: int = Query(),
    mode: RangeMode = Query(RangeMode.DAY, alias="range"),
) -> dict[str, str]:
    display_date = _display_date(on)
    try:
        return {"date": move_date(display_date, direction, mode)}
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e


@router.get("/stats")
async def stats(admin: User = Depends(require_admin)) -> dict[str, int]:
    return shift_stats(get_db().snapshot.shifts)


@router.post("/shifts", status_code=status.HTTP_201_CREATED)
async def post_shift(body: ShiftCreate, admin: User = Depends(require_admin)) -> Shift:
    try:
        shift = await create_shift(get_db().shift_store, body)
    except StoreWriteError as e:
        raise _store_unavailable(e) from e
    log_admin_action("CREATE_SHIFT", admin.id, {"shift_id": shift.id})
    return shift


@router.post("/shifts/{shift_id}/apply")
async def apply(shift_id: str, user: User = Depends(current_user)) -> Shift:
    """
    Apply for a shift. Applying twice is rejected, so an applicant id is
    never stored twice.
    """
    db = get_db()
    log_api_call(f"/shifts/{shift_id}/apply", user.id)
    try:
        return await apply_to_shift(db.shift_store, db.snapshot, shift_id, user.id)
    except MarketplaceError as e:
        raise _http_error(e) from e
    except StoreWriteError as e:
        raise _store_unavailable(e) from e


@router.post("/shifts/{shift_id}/approve")
async def approve(
    shift_id: str, body: ApproveRequest, admin: User = Depends(require_admin)
) -> Shift:
    db = get_db()
    try:
        shift = await approve_applicant(
            db.shift_store, db.snapshot, shift_id, body.user_id
        )
    except MarketplaceError as e:
        raise _http_error(e) from e
    except StoreWriteError as e:
        raise _store_unavailable(e) from e
    log_admin_action(
        "APPROVE_APPLICANT", admin.id, {"shift_id": shift_id, "user_id": body.user_id}
    )
    return shift


@router.delete("/shifts/{shift_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_shift(shift_id: str, admin: User = Depends(require_admin)) -> None:
    db = get_db()
    try:
        await delete_shift(db.shift_store, db.snapshot, shift_id)
    except MarketplaceError as e:
        raise _http_error(e) from e
    except StoreWriteError as e:
        raise _store_unavailable(e) from e
    log_admin_action("DELETE_SHIFT", admin.id, {"shift_id": shift_id})


@router.get("/export.csv")
async def export_csv(
    admin: User = Depends(require_admin),
    settings: type[Config] = Depends(get_settings),
) -> Response:
    snapshot = get_db().snapshot
    rows = build_export_rows(snapshot.shifts, snapshot.users)
    filename = export_filename(settings.EXPORT_PREFIX, date.today())
    log_admin_action(
        "EXPORT_CSV",
        admin.id,
        {"rows": len(rows), "allowance_total": total_allowance(rows)},
    )
    return Response(
        content=render_csv(rows, include_bom=settings.CSV_INCLUDE_BOM),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/users")
async def list_users(
    q: str = "", admin: User = Depends(require_admin)
) -> list[UserView]:
    users = get_db().snapshot.users
    if q:
        users = search_users(users, q)
    return [UserView.of(u) for u in users]


@router.put("/users/{user_id}")
async def edit_user(
    user_id: str, body: UserUpdate, admin: User = Depends(require_admin)
) -> UserView:
    db = get_db()
    existing = db.snapshot.find_user(user_id)
    if existing is None:
        raise _http_error(UserNotFoundError(f"User {user_id} not found"))

    updated = existing.model_copy(update=body.model_dump(exclude_none=True))
    try:
        await db.user_store.update(updated)
    except StoreWriteError as e:
        raise _store_unavailable(e) from e
    log_admin_action(
        "UPDATE_USER",
        admin.id,
        {"user_id": user_id, "fields": sorted(body.model_dump(exclude_none=True))},
    )
    return UserView.of(updated)


@router.post("/policy/advice")
async def policy_advice(
    body: PolicyAdviceRequest,
    request: Request,
    admin: User = Depends(require_admin),
) -> PolicyDraft:
    advisor: PolicyAdvisor = request.app.state.advisor
    log_admin_action("POLICY_ADVICE", admin.id, {"title": body.title})
    return await advisor.draft_policy(
        body.title, body.organization_context, body.concern
    )


def create_app(config_name: str | None = None) -> FastAPI:
    settings = get_config(config_name)
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.SAMPLE_DATA_PATH:
            load_sample_data(get_db(), settings.SAMPLE_DATA_PATH)
            logger.info(f"Loaded sample data from {settings.SAMPLE_DATA_PATH}")
        if await seed_users(settings):
            logger.info("User store was empty; seeded staff roster")
        yield

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.advisor = PolicyAdvisor(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        timeout=settings.GEMINI_TIMEOUT_SECONDS,
    )
    app.include_router(router)

    @app.exception_handler(Exception)
    async def handle_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    logger.info("All routes registered")
    return app
