# shoplist/identity_service/main.py
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

app = FastAPI(title="Identity Service (dev mock)")


USERS: Dict[str, dict] = {
    "user_demo": {"id": "user_demo", "public_metadata": {}, "private_metadata": {}},
    "user_pro": {
        "id": "user_pro",
        "public_metadata": {"currency": "USD", "theme": "dark"},
        "private_metadata": {"plan": 1},
    },
}

SESSIONS: Dict[str, str] = {
    "sess_demo": "user_demo",
    "sess_pro": "user_pro",
}


class VerifyIn(BaseModel):
    token: str


class MetadataPatch(BaseModel):
    public_metadata: Optional[dict] = None
    private_metadata: Optional[dict] = None


def _user(user_id: str) -> dict:
    user = USERS.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.post("/sessions/verify")
def verify_session(payload: VerifyIn):
    user_id = SESSIONS.get(payload.token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid session")
    return {"user_id": user_id}


@app.get("/users/{user_id}")
def get_user(user_id: str):
    return _user(user_id)


@app.patch("/users/{user_id}/metadata")
def update_metadata(user_id: str, payload: MetadataPatch):
    user = _user(user_id)
    if payload.public_metadata:
        user["public_metadata"] = {**user["public_metadata"], **payload.public_metadata}
    if payload.private_metadata:
        user["private_metadata"] = {**user["private_metadata"], **payload.private_metadata}
    return user
