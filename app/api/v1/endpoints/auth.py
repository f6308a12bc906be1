from typing import Any

from fastapi import APIRouter, Depends

from app.api import deps
from app.core.security import PortalUser
from app.schemas.auth import CustomerList, LoginRequest, LoginResponse
from app.schemas.responses import SuccessResponse
from app.services import portal_client

router = APIRouter()


@router.post("/login", response_model=SuccessResponse[LoginResponse])
async def login(login_data: LoginRequest) -> Any:
    """
    Forward credentials to the portal and hand its token back.
    """
    result = await portal_client.login(login_data.username, login_data.password)
    return SuccessResponse(data=result, message="เข้าสู่ระบบสำเร็จ")


@router.get("/verify", response_model=SuccessResponse[dict])
async def verify(current_user: PortalUser = Depends(deps.get_current_user)) -> Any:
    return SuccessResponse(
        data={
            "user": {
                "userid": current_user.userid,
                "username": current_user.username,
                "userlevel": current_user.userlevel,
                "userprimarykey": current_user.userprimarykey,
            }
        },
        message="Token ถูกต้อง",
    )


@router.get("/customer_list", response_model=SuccessResponse[CustomerList])
async def customer_list(current_user: PortalUser = Depends(deps.get_current_user)) -> Any:
    """
    Customers (communities) the signed-in user may manage.
    """
    customers = await portal_client.customer_list(current_user)
    return SuccessResponse(data={"customers": customers, "total": len(customers)})
