from fastapi import APIRouter, Depends

from ..schemas import ProfileUpdateRequest, success_response
from ..users import UserDirectory
from .auth import User, get_current_user
from .deps import get_user_directory

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user), directory: UserDirectory = Depends(get_user_directory)):
	return success_response(directory.get_profile(user.sub))


@router.put("/profile")
def update_profile(
	req: ProfileUpdateRequest,
	user: User = Depends(get_current_user),
	directory: UserDirectory = Depends(get_user_directory),
):
	data = directory.update_profile(
		user.sub,
		name=req.name,
		avatar_url=req.avatar_url,
		country=req.country,
		style=req.style,
		gender=req.gender,
	)
	return success_response(data)
