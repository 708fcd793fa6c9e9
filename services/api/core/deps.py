# services/api/core/deps.py
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from adapters.base import StorageAdapter


def get_storage_adapter(request: Request) -> StorageAdapter:
    adapter = getattr(request.app.state, "storage_adapter", None)
    if adapter is None:
        raise HTTPException(
            status_code=500,
            detail="Storage adapter not configured on app.state.storage_adapter",
        )
    return adapter


# ---- DI alias (no default value allowed) ----
Storage = Annotated[StorageAdapter, Depends(get_storage_adapter)]
