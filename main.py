import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import catalog
import chat
import config
import database
import news
import orders
from auth import AuthContext, get_current_user, get_optional_user, require_admin, require_member
from catalog import GEMS, INSTRUMENTS
from database import ensure_indexes, get_db
from errors import AppError, InvalidInput
from schemas import Document, NewsPost, OrderCreate
from storage import get_storage, upload_images

config.setup_logging()
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="Gemora API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def prepare_database():
    if database.db is None:
        return
    try:
        ensure_indexes(database.db)
        logger.info("MongoDB Connected")
    except PyMongoError as e:
        logger.error("MongoDB connection failed: %s", e)


# Error responses
@app.exception_handler(AppError)
async def app_error_handler(request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content=InvalidInput("Invalid data", error="; ".join(problems)).to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(PyMongoError)
async def database_error_handler(request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"message": "Database error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


# Schemas (request/response)
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None


class PasswordChange(Document):
    current_password: str
    new_password: str


class RoleUpdate(BaseModel):
    role: str


class StatusUpdate(Document):
    status: Optional[str] = None
    order_status: Optional[str] = None


class ChatRequest(BaseModel):
    message: Optional[str] = None


# Health and helpers
@app.get("/")
def root():
    return {"ok": True, "message": "GEMORA API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Auth & users
@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    return accounts.register(db, payload.name, payload.email, payload.password)


@app.post("/api/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    return accounts.login(db, payload.email, payload.password)


@app.get("/api/auth/me")
def me(user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return accounts.get_profile(db, user)


@app.put("/api/auth/me")
def update_profile(payload: ProfileUpdate, user: AuthContext = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    return accounts.update_profile(db, user, payload.model_dump(exclude_unset=True))


@app.put("/api/auth/me/avatar")
def update_avatar(image: UploadFile = File(...), user: AuthContext = Depends(get_current_user),
                  db: Database = Depends(get_db), storage=Depends(get_storage)):
    urls = upload_images(storage, [image], "gemora-profiles")
    if not urls:
        raise InvalidInput("An image is required")
    return accounts.update_profile(db, user, {"profileImage": urls[0]})


@app.put("/api/auth/password")
def change_password(payload: PasswordChange, user: AuthContext = Depends(get_current_user),
                    db: Database = Depends(get_db)):
    return accounts.change_password(db, user, payload.current_password, payload.new_password)


@app.get("/api/users")
def list_users(_: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return accounts.list_users(db)


@app.put("/api/users/{user_id}/role")
def set_user_role(user_id: str, payload: RoleUpdate, _: AuthContext = Depends(require_admin),
                  db: Database = Depends(get_db)):
    return accounts.set_role(db, user_id, payload.role)


# Gems
@app.get("/api/gems")
def list_gems(user: Optional[AuthContext] = Depends(get_optional_user), db: Database = Depends(get_db)):
    return catalog.list_items(db, GEMS, user)


@app.put("/api/gems/bulk/approve")
def bulk_approve_gems(_: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.bulk_approve(db, GEMS)


@app.get("/api/gems/{gem_id}")
def get_gem(gem_id: str, db: Database = Depends(get_db)):
    return catalog.get_item(db, GEMS, gem_id)


@app.post("/api/gems", status_code=201)
def create_gem(
    name: str = Form(...),
    carat: float = Form(...),
    phone_number: str = Form(..., alias="phoneNumber"),
    clarity: Optional[str] = Form(None),
    origin: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    count_in_stock: int = Form(1, alias="countInStock"),
    description: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None, alias="imageUrl"),
    image: Optional[List[UploadFile]] = File(None),
    user: AuthContext = Depends(require_member),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    images = upload_images(storage, image, GEMS.folder)
    if image_url:
        images.append(image_url)
    fields = {
        "name": name, "carat": carat, "phone_number": phone_number, "clarity": clarity, "origin": origin,
        "price": price, "count_in_stock": count_in_stock, "description": description,
    }
    return catalog.create_item(db, GEMS, user, fields, images)


@app.put("/api/gems/{gem_id}/status")
def update_gem_status(gem_id: str, payload: StatusUpdate, _: AuthContext = Depends(require_admin),
                      db: Database = Depends(get_db)):
    return catalog.update_status(db, GEMS, gem_id, payload.status)


@app.delete("/api/gems/{gem_id}")
def delete_gem(gem_id: str, _: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.delete_item(db, GEMS, gem_id)


# Instruments (also served as /api/tools)
@app.get("/api/instruments")
@app.get("/api/tools")
def list_instruments(user: Optional[AuthContext] = Depends(get_optional_user), db: Database = Depends(get_db)):
    return catalog.list_items(db, INSTRUMENTS, user)


@app.put("/api/instruments/bulk/approve")
@app.put("/api/tools/bulk/approve")
def bulk_approve_instruments(_: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.bulk_approve(db, INSTRUMENTS)


@app.get("/api/instruments/{instrument_id}")
@app.get("/api/tools/{instrument_id}")
def get_instrument(instrument_id: str, db: Database = Depends(get_db)):
    return catalog.get_item(db, INSTRUMENTS, instrument_id)


@app.post("/api/instruments", status_code=201)
@app.post("/api/tools", status_code=201)
def create_instrument(
    name: str = Form(...),
    brand: str = Form(...),
    category: str = Form(...),
    price: float = Form(...),
    count_in_stock: int = Form(0, alias="countInStock"),
    description: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None, alias="imageUrl"),
    image: Optional[List[UploadFile]] = File(None),
    user: AuthContext = Depends(require_member),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    images = upload_images(storage, image, INSTRUMENTS.folder)
    if image_url:
        images.append(image_url)
    fields = {
        "name": name, "brand": brand, "category": category, "price": price,
        "count_in_stock": count_in_stock, "description": description,
    }
    return catalog.create_item(db, INSTRUMENTS, user, fields, images)


@app.put("/api/instruments/{instrument_id}/status")
@app.put("/api/tools/{instrument_id}/status")
def update_instrument_status(instrument_id: str, payload: StatusUpdate, _: AuthContext = Depends(require_admin),
                             db: Database = Depends(get_db)):
    return catalog.update_status(db, INSTRUMENTS, instrument_id, payload.status)


@app.delete("/api/instruments/{instrument_id}")
@app.delete("/api/tools/{instrument_id}")
def delete_instrument(instrument_id: str, _: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.delete_item(db, INSTRUMENTS, instrument_id)


# Orders
@app.post("/api/orders", status_code=201)
def create_order(payload: OrderCreate, user: AuthContext = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    return orders.create_order(db, user, payload)


@app.get("/api/orders")
def list_all_orders(_: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return orders.get_all_orders(db)


@app.get("/api/orders/myorders")
def list_my_orders(user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.get_my_orders(db, user)


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.get_order(db, user, order_id)


@app.put("/api/orders/{order_id}/status")
def update_order_status(order_id: str, payload: StatusUpdate, _: AuthContext = Depends(require_admin),
                        db: Database = Depends(get_db)):
    return orders.update_order_status(db, order_id, payload.status or payload.order_status)


@app.put("/api/orders/{order_id}/pay")
def pay_order(order_id: str, user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.mark_order_paid(db, user, order_id)


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, _: AuthContext = Depends(require_admin), db: Database = Depends(get_db)):
    return orders.delete_order(db, order_id)


# News
@app.get("/api/news")
def list_news(status: Optional[str] = None, db: Database = Depends(get_db)):
    return news.list_news(db, status)


@app.post("/api/news", status_code=201)
def create_news(payload: NewsPost, _: AuthContext = Depends(require_member), db: Database = Depends(get_db)):
    return news.create_news(db, payload)


@app.put("/api/news/{post_id}/status")
def update_news_status(post_id: str, payload: StatusUpdate, _: AuthContext = Depends(require_member),
                       db: Database = Depends(get_db)):
    return news.update_news_status(db, post_id, payload.status)


@app.delete("/api/news/{post_id}")
def delete_news(post_id: str, _: AuthContext = Depends(require_member), db: Database = Depends(get_db)):
    return news.delete_news(db, post_id)


# Chat
@app.post("/api/chat")
def ask_bot(payload: ChatRequest, model_factory=Depends(chat.get_model_factory)):
    return chat.ask(model_factory, payload.message)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
