"""
Request identity.

Sign-in happens upstream (OAuth proxy); the signed-in user id reaches the API
in the X-User-Id header.
"""
import re
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    # The id becomes a directory name under the upload root
    if not _USER_ID_RE.match(x_user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user id")
    return x_user_id


CurrentUser = Annotated[str, Depends(current_user_id)]
