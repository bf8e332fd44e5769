"""
api/routes/users.py -- Identity endpoint for the bearer-authenticated caller.

Routes:
  GET /api/users/me -- the account ApiGate resolved for this request
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import AccountData, success
from auth.dependencies import get_identity
from auth.models import AuthenticatedIdentity

router = APIRouter()


@router.get("/users/me")
def me(identity: AuthenticatedIdentity = Depends(get_identity)) -> dict:
    return success("OK", AccountData.from_account(identity.account).model_dump())
