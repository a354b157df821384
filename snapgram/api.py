"""
Data-access operations for users, posts, saves and files.

Each operation composes one or two platform calls. Failures are rethrown as
``SnapgramError``; operations that upload a file before writing a document
delete the upload again when a later step fails. That cleanup is
best-effort, so a crash between the two steps can still orphan a file.
"""

from __future__ import annotations

import logging
from typing import Optional

from snapgram.account import AccountService
from snapgram.config import get_settings
from snapgram.db import DocumentStore
from snapgram.dependencies import (
    get_account_service,
    get_document_store,
    get_file_storage,
)
from snapgram.errors import SnapgramError, platform_call, require
from snapgram.query import CursorAfter, Equal, Limit, OrderDesc, Search
from snapgram.storage import FileStorage
from snapgram.types import (
    FileUpload,
    NewPost,
    NewUser,
    UpdatePost,
    UpdateUser,
    parse_tags,
)

logger = logging.getLogger(__name__)

RECENT_POSTS_LIMIT = 20
INFINITE_POSTS_PAGE_SIZE = 10
OK = {"status": "ok"}


def _cleanup_file(storage: FileStorage, file_id: Optional[str]) -> None:
    if not file_id:
        return
    try:
        storage.delete_file(file_id)
    except Exception:
        logger.exception("Failed to delete file %s during cleanup", file_id)


def _upload_with_preview(storage: FileStorage, upload: FileUpload) -> tuple[str, str]:
    """Upload ``upload`` and return its (file id, preview url)."""
    uploaded = require(storage.create_file(upload), "upload_file")
    file_id = uploaded["$id"]
    try:
        file_url = require(storage.get_file_preview(file_id), "get_file_preview")
    except Exception:
        _cleanup_file(storage, file_id)
        raise
    return file_id, file_url


# Users and sessions


@platform_call
def create_user_account(
    user: NewUser,
    *,
    account: AccountService | None = None,
    db: DocumentStore | None = None,
) -> dict:
    account = account or get_account_service()
    new_account = require(
        account.create(user.email, user.password, user.name), "create_account"
    )
    avatar_url = account.get_initials_url(user.name)
    return save_user_to_db(
        {
            "accountId": new_account["$id"],
            "name": new_account["name"],
            "email": new_account["email"],
            "username": user.username,
            "imageUrl": avatar_url,
        },
        db=db,
    )


@platform_call
def save_user_to_db(user: dict, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    settings = get_settings()
    return db.create_document(settings.appwrite_user_collection_id, user)


@platform_call
def sign_in_account(
    email: str, password: str, *, account: AccountService | None = None
) -> dict:
    account = account or get_account_service()
    return account.create_email_session(email, password)


def get_account(*, account: AccountService | None = None) -> Optional[dict]:
    """Return the signed-in account, or None when there is no valid session."""
    account = account or get_account_service()
    try:
        return account.get()
    except Exception as exc:
        logger.info("No current account: %s", exc)
        return None


@platform_call
def get_current_user(
    *,
    account: AccountService | None = None,
    db: DocumentStore | None = None,
) -> dict:
    db = db or get_document_store()
    settings = get_settings()
    current_account = require(get_account(account=account), "get_account", code=401)
    users = db.list_documents(
        settings.appwrite_user_collection_id,
        [Equal("accountId", current_account["$id"])],
    )
    require(users, "list_documents")
    return require(users["documents"], "get_current_user", code=404)[0]


@platform_call
def sign_out_account(*, account: AccountService | None = None) -> dict:
    account = account or get_account_service()
    account.delete_session("current")
    return OK


@platform_call
def get_users(limit: Optional[int] = None, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    queries = [OrderDesc("$createdAt")]
    if limit:
        queries.append(Limit(limit))
    return require(
        db.list_documents(get_settings().appwrite_user_collection_id, queries),
        "get_users",
    )


@platform_call
def get_user_by_id(user_id: str, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    return require(
        db.get_document(get_settings().appwrite_user_collection_id, user_id),
        "get_user_by_id",
    )


@platform_call
def update_user(
    user: UpdateUser,
    *,
    db: DocumentStore | None = None,
    storage: FileStorage | None = None,
) -> dict:
    db = db or get_document_store()
    storage = storage or get_file_storage()
    has_file_to_update = len(user.files) > 0

    image_url, image_id = user.image_url, user.image_id
    if has_file_to_update:
        image_id, image_url = _upload_with_preview(storage, user.files[0])

    try:
        updated_user = require(
            db.update_document(
                get_settings().appwrite_user_collection_id,
                user.user_id,
                {
                    "name": user.name,
                    "bio": user.bio,
                    "imageUrl": image_url,
                    "imageId": image_id,
                },
            ),
            "update_user",
        )
    except Exception:
        if has_file_to_update:
            _cleanup_file(storage, image_id)
        raise

    if has_file_to_update and user.image_id:
        _cleanup_file(storage, user.image_id)
    return updated_user


# Posts


@platform_call
def create_post(
    post: NewPost,
    *,
    db: DocumentStore | None = None,
    storage: FileStorage | None = None,
) -> dict:
    db = db or get_document_store()
    storage = storage or get_file_storage()
    require(post.files, "create_post files", code=400)
    file_id, file_url = _upload_with_preview(storage, post.files[0])

    try:
        return require(
            db.create_document(
                get_settings().appwrite_post_collection_id,
                {
                    "creator": post.user_id,
                    "caption": post.caption,
                    "imageUrl": file_url,
                    "imageId": file_id,
                    "location": post.location,
                    "tags": parse_tags(post.tags),
                },
            ),
            "create_post",
        )
    except Exception:
        _cleanup_file(storage, file_id)
        raise


@platform_call
def update_post(
    post: UpdatePost,
    *,
    db: DocumentStore | None = None,
    storage: FileStorage | None = None,
) -> dict:
    db = db or get_document_store()
    storage = storage or get_file_storage()
    has_file_to_update = len(post.files) > 0

    image_url, image_id = post.image_url, post.image_id
    if has_file_to_update:
        image_id, image_url = _upload_with_preview(storage, post.files[0])

    try:
        updated_post = require(
            db.update_document(
                get_settings().appwrite_post_collection_id,
                post.post_id,
                {
                    "caption": post.caption,
                    "imageUrl": image_url,
                    "imageId": image_id,
                    "location": post.location,
                    "tags": parse_tags(post.tags),
                },
            ),
            "update_post",
        )
    except Exception:
        if has_file_to_update:
            _cleanup_file(storage, image_id)
        raise

    if has_file_to_update and post.image_id:
        _cleanup_file(storage, post.image_id)
    return updated_post


@platform_call
def delete_post(
    post_id: str,
    image_id: str,
    *,
    db: DocumentStore | None = None,
    storage: FileStorage | None = None,
) -> dict:
    if not post_id or not image_id:
        raise SnapgramError.from_message(
            "ValueError", "post_id and image_id are required", code=400
        )
    db = db or get_document_store()
    storage = storage or get_file_storage()
    db.delete_document(get_settings().appwrite_post_collection_id, post_id)
    _cleanup_file(storage, image_id)
    return OK


@platform_call
def get_post_by_id(post_id: str, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    return require(
        db.get_document(get_settings().appwrite_post_collection_id, post_id),
        "get_post_by_id",
    )


@platform_call
def get_recent_posts(*, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    return require(
        db.list_documents(
            get_settings().appwrite_post_collection_id,
            [OrderDesc("$createdAt"), Limit(RECENT_POSTS_LIMIT)],
        ),
        "get_recent_posts",
    )


@platform_call
def get_infinite_posts(
    page_param: Optional[str] = None, *, db: DocumentStore | None = None
) -> dict:
    db = db or get_document_store()
    queries = [OrderDesc("$updatedAt"), Limit(INFINITE_POSTS_PAGE_SIZE)]
    if page_param:
        queries.append(CursorAfter(str(page_param)))
    return require(
        db.list_documents(get_settings().appwrite_post_collection_id, queries),
        "get_infinite_posts",
    )


@platform_call
def search_posts(search_term: str, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    return require(
        db.list_documents(
            get_settings().appwrite_post_collection_id,
            [Search("caption", search_term)],
        ),
        "search_posts",
    )


@platform_call
def get_user_posts(
    user_id: Optional[str] = None, *, db: DocumentStore | None = None
) -> Optional[dict]:
    if not user_id:
        return None
    db = db or get_document_store()
    return require(
        db.list_documents(
            get_settings().appwrite_post_collection_id,
            [Equal("creator", user_id), OrderDesc("$createdAt")],
        ),
        "get_user_posts",
    )


@platform_call
def like_post(
    post_id: str, likes: list[str], *, db: DocumentStore | None = None
) -> dict:
    db = db or get_document_store()
    return require(
        db.update_document(
            get_settings().appwrite_post_collection_id, post_id, {"likes": likes}
        ),
        "like_post",
    )


@platform_call
def save_post(post_id: str, user_id: str, *, db: DocumentStore | None = None) -> dict:
    db = db or get_document_store()
    return require(
        db.create_document(
            get_settings().appwrite_saves_collection_id,
            {"user": user_id, "post": post_id},
        ),
        "save_post",
    )


@platform_call
def delete_saved_post(
    saved_record_id: str, *, db: DocumentStore | None = None
) -> dict:
    db = db or get_document_store()
    db.delete_document(get_settings().appwrite_saves_collection_id, saved_record_id)
    return OK


# Files


@platform_call
def upload_file(upload: FileUpload, *, storage: FileStorage | None = None) -> dict:
    storage = storage or get_file_storage()
    return require(storage.create_file(upload), "upload_file")


@platform_call
def get_file_preview(file_id: str, *, storage: FileStorage | None = None) -> str:
    storage = storage or get_file_storage()
    return require(storage.get_file_preview(file_id), "get_file_preview")


@platform_call
def delete_file(file_id: str, *, storage: FileStorage | None = None) -> dict:
    storage = storage or get_file_storage()
    storage.delete_file(file_id)
    return OK
