from fastapi import APIRouter, Body, Depends

from ..schemas import DeleteRequest, FinishRequest, SettingsUpdateRequest, success_response
from ..sessions import SessionLifecycle
from ..users import UserDirectory
from .auth import User, get_current_user
from .deps import get_lifecycle, get_user_directory

router = APIRouter(prefix="/api/conversation", tags=["conversation"])


@router.post("/start")
def start_session(user: User = Depends(get_current_user), lifecycle: SessionLifecycle = Depends(get_lifecycle)):
	result = lifecycle.start(user.sub)
	return success_response({"sessionId": result.session_id, "startTime": result.start_time})


@router.post("/finish")
def finish_session(
	req: FinishRequest,
	user: User = Depends(get_current_user),
	lifecycle: SessionLifecycle = Depends(get_lifecycle),
):
	result = lifecycle.finish(user.sub, req.session_id, req.script, req.score)
	return success_response(result.as_dict())


@router.get("/history")
def get_history(user: User = Depends(get_current_user), lifecycle: SessionLifecycle = Depends(get_lifecycle)):
	return success_response(lifecycle.get_history(user.sub))


@router.get("/settings")
def get_settings(user: User = Depends(get_current_user), directory: UserDirectory = Depends(get_user_directory)):
	return success_response(directory.get_settings(user.sub))


@router.put("/settings")
def update_settings(
	req: SettingsUpdateRequest,
	user: User = Depends(get_current_user),
	directory: UserDirectory = Depends(get_user_directory),
):
	return success_response(
		directory.update_settings(user.sub, country=req.country, style=req.style, gender=req.gender)
	)


@router.delete("/delete")
def delete_session(
	req: DeleteRequest = Body(...),
	user: User = Depends(get_current_user),
	lifecycle: SessionLifecycle = Depends(get_lifecycle),
):
	result = lifecycle.delete(user.sub, req.session_id, all=req.all)
	message = "All conversations deleted" if req.all else "Conversation deleted"
	return success_response(result, message)


# Registered last so /history, /settings and /delete are matched first
@router.get("/{session_id}")
def get_session(
	session_id: int,
	user: User = Depends(get_current_user),
	lifecycle: SessionLifecycle = Depends(get_lifecycle),
):
	return success_response(lifecycle.get_session(session_id, user.sub))
