import logging

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_backend_client, require_route
from app.client.backend import BackendClient
from app.schemas.auth import CreateUserRequest, UpdateUserRequest
from app.services.user_service import UserService

router = APIRouter(dependencies=[Depends(require_route("/users"))])

logger = logging.getLogger(__name__)


@router.get("/")
async def get_users(client: BackendClient = Depends(get_backend_client)):
    return {"users": await UserService(client).list_users()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_user(
        body: CreateUserRequest,
        client: BackendClient = Depends(get_backend_client)
):
    """
    Creates a user.

    When no password is supplied the backend generates one; it is returned
    once as **generatedPassword** and must be shared with the user.
    """
    return await UserService(client).create_user(body)


@router.put("/{user_id}")
async def update_user(
        user_id: str,
        body: UpdateUserRequest,
        client: BackendClient = Depends(get_backend_client)
):
    """Updates name and/or role. The phone number cannot be changed."""
    return {"user": await UserService(client).update_user(user_id, body)}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
        user_id: str,
        client: BackendClient = Depends(get_backend_client)
):
    await UserService(client).delete_user(user_id)


@router.post("/{user_id}/reset-password")
async def reset_password(
        user_id: str,
        client: BackendClient = Depends(get_backend_client)
):
    new_password = await UserService(client).reset_password(user_id)
    return {"newPassword": new_password}
