from fastapi import APIRouter, Depends, status

from nftrent.schemas.profile_schema import ProfileRead, ProfileRegister
from nftrent.services.profile.profile_service import ProfileService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register the current user",
    description="Creates the marketplace profile for the authenticated identity. The wallet address is optional.",
)
async def register_user(
    *,
    register_form: ProfileRegister,
    profile_service: ProfileService = Depends(ProfileService.get_dependency),
):
    profile = await profile_service.register(register_form)
    return ProfileRead(**profile.model_dump())
