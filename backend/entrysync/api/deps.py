from fastapi import Request, HTTPException, status

from entrysync.services.remote.sql import SqlRemoteStore


def get_record_store(request: Request) -> SqlRemoteStore:
    store = getattr(request.app.state, "record_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Record store is not initialized"
        )
    return store
