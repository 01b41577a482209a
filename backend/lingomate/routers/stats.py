from fastapi import APIRouter, Depends

from ..schemas import success_response
from ..stats import StatsAggregator
from .auth import User, get_current_user
from .deps import get_aggregator

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats")
def get_stats(user: User = Depends(get_current_user), aggregator: StatsAggregator = Depends(get_aggregator)):
	return success_response(aggregator.get_stats(user.sub).as_dict())


@router.get("/home/status")
def get_home_status(user: User = Depends(get_current_user), aggregator: StatsAggregator = Depends(get_aggregator)):
	return success_response(aggregator.get_home_status(user.sub))
