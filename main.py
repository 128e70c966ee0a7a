from fastapi import FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
from datetime import datetime, timezone
import logging
import time

from auth import AuthGateway, make_password_context
from config import Settings, get_settings
from database import TaskStore, UserStore, seed_demo_data
from errors import AppError
from logging_setup import setup_logging
from models import Identity, Task, User
import schemas

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "admin123"

# auto_error=False: a missing token is reported by the gateway as MissingToken
bearer_scheme = HTTPBearer(auto_error=False)


def respond(message: str, data=None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    body = {"success": status_code < 400, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)


def user_json(user: User) -> dict:
    return schemas.UserOut.model_validate(user).model_dump(mode="json")


def task_json(task: Task) -> dict:
    return schemas.TaskOut.model_validate(task).model_dump(mode="json", by_alias=True)


def auth_json(user: User, token: str) -> dict:
    return schemas.AuthOut(token=token, user=schemas.UserOut.model_validate(user)).model_dump(mode="json")


def create_app(
    settings: Optional[Settings] = None,
    users: Optional[UserStore] = None,
    tasks: Optional[TaskStore] = None,
    gateway: Optional[AuthGateway] = None,
) -> FastAPI:
    settings = settings or get_settings()
    users = users or UserStore()
    tasks = tasks or TaskStore()
    gateway = gateway or AuthGateway(
        users,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        pwd_context=make_password_context(settings.bcrypt_rounds),
    )
    started = time.monotonic()

    if settings.seed_demo_data:
        seed_demo_data(users, tasks, gateway.hash_password(DEMO_PASSWORD))
        logger.info("Demo users loaded: admin / usuario (password %s)", DEMO_PASSWORD)

    app = FastAPI(title="Tasks API")
    app.state.settings = settings
    app.state.users = users
    app.state.tasks = tasks
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling: every failure leaves as the same envelope
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return respond(exc.message, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.debug("Rejected request to %s: %s", request.url.path, errors)
        if errors and all(e["loc"][0] == "path" for e in errors):
            # A non-numeric task id cannot match any task
            return respond("Task not found", status_code=status.HTTP_404_NOT_FOUND)
        return respond("Invalid request", status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return respond("Route not found", status_code=exc.status_code)
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return respond("Method not allowed", status_code=exc.status_code)
        return respond(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return respond("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Get current identity from the bearer token
    def get_identity(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Identity:
        return gateway.verify(credentials.credentials if credentials else None)

    # Register
    @app.post("/api/auth/register")
    def register(payload: schemas.UserCreate):
        user, token = gateway.register(payload.username, payload.email, payload.password)
        return respond("User registered successfully", auth_json(user, token), status.HTTP_201_CREATED)

    # Login
    @app.post("/api/auth/login")
    def login(payload: schemas.UserLogin):
        user, token = gateway.login(payload.username, payload.password)
        return respond("Login successful", auth_json(user, token))

    @app.get("/api/auth/me")
    def me(identity: Identity = Depends(get_identity)):
        user = gateway.current_user(identity)
        return respond("User authenticated", {"user": user_json(user)})

    if settings.enable_debug_routes:
        # Development only: lists accounts without authentication.
        @app.get("/api/debug/users")
        def debug_users():
            listing = [
                schemas.DebugUserOut(
                    id=u.id, username=u.username, email=u.email, has_password=bool(u.password)
                ).model_dump(mode="json", by_alias=True)
                for u in users.all()
            ]
            return respond("User list for debugging", listing)

    @app.get("/api/tasks")
    def list_tasks(identity: Identity = Depends(get_identity)):
        owned = tasks.list_for_user(identity.user_id)
        logger.debug("Listing %d tasks for %s", len(owned), identity.username)
        return respond("Tasks retrieved successfully", [task_json(t) for t in owned])

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: int, identity: Identity = Depends(get_identity)):
        task = tasks.get_for_user(identity.user_id, task_id)
        if task is None:
            return respond("Task not found", status_code=status.HTTP_404_NOT_FOUND)
        return respond("Task retrieved successfully", task_json(task))

    @app.post("/api/tasks")
    def create_task(payload: schemas.TaskCreate, identity: Identity = Depends(get_identity)):
        task = tasks.create(identity.user_id, payload.title, payload.description)
        logger.info("Task %s created by %s: %s", task.id, identity.username, task.title)
        return respond("Task created successfully", task_json(task), status.HTTP_201_CREATED)

    # Update task
    @app.put("/api/tasks/{task_id}")
    def update_task(task_id: int, payload: schemas.TaskUpdate, identity: Identity = Depends(get_identity)):
        # null counts as absent: only fields that were sent with a value change
        fields = payload.model_dump(exclude_unset=True, exclude_none=True)
        task = tasks.update(identity.user_id, task_id, fields)
        logger.info("Task %s updated by %s", task.id, identity.username)
        return respond("Task updated successfully", task_json(task))

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: int, identity: Identity = Depends(get_identity)):
        task = tasks.delete(identity.user_id, task_id)
        logger.info("Task %s deleted by %s: %s", task.id, identity.username, task.title)
        return respond("Task deleted successfully", task_json(task))

    @app.get("/api/health")
    def health():
        return JSONResponse({
            "success": True,
            "message": "Backend running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - started,
        })

    return app


# Served with `python main.py` or `uvicorn main:create_app --factory`
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    app = create_app(settings)
    logger.info("API available at http://localhost:%s/api", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
