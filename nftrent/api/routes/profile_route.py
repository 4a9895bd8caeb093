from fastapi import APIRouter, Depends

from nftrent.schemas.profile_schema import ProfileRead
from nftrent.services.profile.profile_service import ProfileService

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("/me", response_model=ProfileRead)
async def get_profile(
    *,
    profile_service: ProfileService = Depends(ProfileService.get_dependency),
):
    profile = await profile_service.get_current_profile()
    return ProfileRead(**profile.model_dump())
