"""
HTTP routes exposing the data-access operations.
"""

from __future__ import annotations

from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
)

from snapgram import api
from snapgram.account import AccountService
from snapgram.config import get_settings
from snapgram.db import DocumentStore
from snapgram.dependencies import (
    get_account_service,
    get_document_store,
    get_file_storage,
    get_session_account,
)
from snapgram.explore import get_next_page_param
from snapgram.schemas import (
    DocumentListResponse,
    InfinitePostsResponse,
    LikePostRequest,
    SavePostRequest,
    SignInRequest,
    SignUpRequest,
    StatusResponse,
)
from snapgram.storage import FileStorage
from snapgram.types import FileUpload, NewPost, NewUser, UpdatePost, UpdateUser

router = APIRouter()


async def _to_upload(file: Optional[UploadFile]) -> list[FileUpload]:
    if file is None or not file.filename:
        return []
    return [
        FileUpload(
            filename=file.filename,
            content=await file.read(),
            content_type=file.content_type,
        )
    ]


# Auth


@router.post("/auth/sign-up", status_code=201)
def sign_up(
    payload: SignUpRequest,
    account: AccountService = Depends(get_account_service),
    db: DocumentStore = Depends(get_document_store),
):
    user = NewUser(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        username=payload.username,
    )
    return api.create_user_account(user, account=account, db=db)


@router.post("/auth/sign-in", status_code=201)
def sign_in(
    payload: SignInRequest,
    response: Response,
    account: AccountService = Depends(get_account_service),
):
    session = api.sign_in_account(
        payload.email, payload.password, account=account.with_session(None)
    )
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        session["secret"],
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return {k: v for k, v in session.items() if k != "secret"}


@router.post("/auth/sign-out", response_model=StatusResponse)
def sign_out(
    response: Response,
    account: AccountService = Depends(get_session_account),
):
    result = api.sign_out_account(account=account)
    response.delete_cookie(get_settings().session_cookie_name)
    return result


@router.get("/auth/account")
def current_account(account: AccountService = Depends(get_session_account)):
    result = api.get_account(account=account)
    if result is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return result


# Users


@router.get("/users/me")
def current_user(
    account: AccountService = Depends(get_session_account),
    db: DocumentStore = Depends(get_document_store),
):
    return api.get_current_user(account=account, db=db)


@router.get("/users", response_model=DocumentListResponse)
def list_users(
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: DocumentStore = Depends(get_document_store),
):
    return api.get_users(limit, db=db)


@router.get("/users/{user_id}")
def get_user(user_id: str, db: DocumentStore = Depends(get_document_store)):
    return api.get_user_by_id(user_id, db=db)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    name: str = Form(...),
    bio: Optional[str] = Form(None),
    image_url: str = Form(...),
    image_id: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: DocumentStore = Depends(get_document_store),
    storage: FileStorage = Depends(get_file_storage),
):
    user = UpdateUser(
        user_id=user_id,
        name=name,
        bio=bio,
        image_url=image_url,
        image_id=image_id,
        files=await _to_upload(file),
    )
    return api.update_user(user, db=db, storage=storage)


@router.get("/users/{user_id}/posts", response_model=DocumentListResponse)
def list_user_posts(user_id: str, db: DocumentStore = Depends(get_document_store)):
    return api.get_user_posts(user_id, db=db)


# Posts


@router.post("/posts", status_code=201)
async def create_post(
    user_id: str = Form(...),
    caption: str = Form("", max_length=2200),
    location: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: DocumentStore = Depends(get_document_store),
    storage: FileStorage = Depends(get_file_storage),
):
    post = NewPost(
        user_id=user_id,
        caption=caption,
        files=await _to_upload(file),
        location=location,
        tags=tags,
    )
    return api.create_post(post, db=db, storage=storage)


@router.get("/posts", response_model=InfinitePostsResponse)
def list_posts(
    cursor: Optional[str] = Query(None, description="Id of the last post seen"),
    db: DocumentStore = Depends(get_document_store),
):
    page = api.get_infinite_posts(cursor, db=db)
    return InfinitePostsResponse(
        total=page["total"],
        documents=page["documents"],
        next_cursor=get_next_page_param(page),
    )


@router.get("/posts/recent", response_model=DocumentListResponse)
def recent_posts(db: DocumentStore = Depends(get_document_store)):
    return api.get_recent_posts(db=db)


@router.get("/posts/search", response_model=DocumentListResponse)
def search_posts(
    q: str = Query(..., min_length=1),
    db: DocumentStore = Depends(get_document_store),
):
    return api.search_posts(q, db=db)


@router.get("/posts/{post_id}")
def get_post(post_id: str, db: DocumentStore = Depends(get_document_store)):
    return api.get_post_by_id(post_id, db=db)


@router.patch("/posts/{post_id}")
async def update_post(
    post_id: str,
    caption: str = Form("", max_length=2200),
    image_url: str = Form(...),
    image_id: str = Form(...),
    location: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: DocumentStore = Depends(get_document_store),
    storage: FileStorage = Depends(get_file_storage),
):
    post = UpdatePost(
        post_id=post_id,
        caption=caption,
        image_url=image_url,
        image_id=image_id,
        files=await _to_upload(file),
        location=location,
        tags=tags,
    )
    return api.update_post(post, db=db, storage=storage)


@router.delete("/posts/{post_id}", response_model=StatusResponse)
def delete_post(
    post_id: str,
    image_id: str = Query(""),
    db: DocumentStore = Depends(get_document_store),
    storage: FileStorage = Depends(get_file_storage),
):
    return api.delete_post(post_id, image_id, db=db, storage=storage)


@router.put("/posts/{post_id}/likes")
def like_post(
    post_id: str,
    payload: LikePostRequest,
    db: DocumentStore = Depends(get_document_store),
):
    return api.like_post(post_id, payload.likes, db=db)


@router.post("/posts/{post_id}/saves", status_code=201)
def save_post(
    post_id: str,
    payload: SavePostRequest,
    db: DocumentStore = Depends(get_document_store),
):
    return api.save_post(post_id, payload.user_id, db=db)


@router.delete("/saves/{save_id}", response_model=StatusResponse)
def delete_saved_post(save_id: str, db: DocumentStore = Depends(get_document_store)):
    return api.delete_saved_post(save_id, db=db)
