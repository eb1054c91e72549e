"""Activity router: expense and settlement feed."""

from typing import Annotated
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.activity import build_activities


router = APIRouter(tags=["activity"])


@router.get("/activity", response_model=list[schemas.Activity])
def get_activity(
    current_user: Annotated[models.User, Depends(get_current_user)],
    activity_type: Annotated[str, Query(alias="type")] = "all",
    timeframe: str = "all",
    db: Session = Depends(get_db)
):
    return build_activities(db, current_user.id, activity_type, timeframe)
