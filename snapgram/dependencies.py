"""
Dependency wiring for the platform clients.
"""

from __future__ import annotations

import logging

from appwrite.client import Client
from fastapi import Depends, Request

from snapgram.account import AccountService, AppwriteAccountService, InMemoryAccountService
from snapgram.config import Settings, get_settings
from snapgram.db import (
    AppwriteDocumentStore,
    DocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)
from snapgram.storage import (
    AppwriteFileStorage,
    FileStorage,
    InMemoryFileStorage,
    S3FileStorage,
)

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None
_file_storage: FileStorage | None = None
_account_service: AccountService | None = None


def _appwrite_configured(settings: Settings) -> bool:
    return bool(settings.appwrite_endpoint and settings.appwrite_project_id)


def _appwrite_client(settings: Settings) -> Client:
    client = (
        Client()
        .set_endpoint(settings.appwrite_endpoint)
        .set_project(settings.appwrite_project_id)
    )
    if settings.appwrite_api_key:
        client.set_key(settings.appwrite_api_key)
    return client


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so in-memory state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif settings.database_url:
        _document_store = SqlDocumentStore(settings.database_url)
    elif _appwrite_configured(settings):
        _document_store = AppwriteDocumentStore(
            _appwrite_client(settings), settings.appwrite_database_id
        )
    else:
        logger.warning("No document backend configured; using in-memory store")
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_file_storage() -> FileStorage:
    global _file_storage
    if _file_storage:
        return _file_storage

    settings = get_settings()
    if settings.use_in_memory_backends:
        _file_storage = InMemoryFileStorage(bucket_id=settings.appwrite_storage_id)
    elif settings.s3_bucket:
        _file_storage = S3FileStorage(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            expires_in=settings.preview_url_expires_in,
        )
    elif _appwrite_configured(settings):
        _file_storage = AppwriteFileStorage(
            _appwrite_client(settings),
            bucket_id=settings.appwrite_storage_id,
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
        )
    else:
        logger.warning("No file storage configured; using in-memory storage")
        _file_storage = InMemoryFileStorage(bucket_id=settings.appwrite_storage_id)
    return _file_storage


def get_account_service() -> AccountService:
    global _account_service
    if _account_service:
        return _account_service

    settings = get_settings()
    if settings.use_in_memory_backends or not _appwrite_configured(settings):
        _account_service = InMemoryAccountService()
    else:
        _account_service = AppwriteAccountService(
            _appwrite_client(settings),
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
        )
    return _account_service


def get_session_account(
    request: Request, account: AccountService = Depends(get_account_service)
) -> AccountService:
    """Account service acting as the caller's session, read from the session cookie."""
    return account.with_session(request.cookies.get(get_settings().session_cookie_name))
