"""
Budget config API endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.application.budget_config import BudgetConfigService
from app.domain.budget_config import BudgetConfig


router = APIRouter(prefix="/api/v1/config", tags=["config"])


class ConfigPayload(BaseModel):
    min_floor: int | None = None
    max_ceil: int | None = None
    resilience_days: int | None = None
    coach_mode: str | None = None


class ConfigResponse(BaseModel):
    min_floor: int
    max_ceil: int
    resilience_days: int
    coach_mode: str

    @classmethod
    def from_config(cls, config: BudgetConfig) -> "ConfigResponse":
        return cls(
            min_floor=config.min_floor,
            max_ceil=config.max_ceil,
            resilience_days=config.resilience_days,
            coach_mode=config.coach_mode,
        )


class CoachModePayload(BaseModel):
    coach_mode: str


@router.get("", response_model=ConfigResponse)
def get_config(db: Session = Depends(get_db)):
    return ConfigResponse.from_config(BudgetConfigService(db).get_config())


@router.put("", response_model=ConfigResponse)
def update_config(payload: ConfigPayload, db: Session = Depends(get_db)):
    """Частичное обновление; ошибки валидации возвращаются как 422"""
    config = BudgetConfigService(db).update_config(**payload.model_dump())
    return ConfigResponse.from_config(config)


@router.get("/coach-mode", response_model=CoachModePayload)
def get_coach_mode(db: Session = Depends(get_db)):
    return CoachModePayload(coach_mode=BudgetConfigService(db).get_coach_mode())


@router.put("/coach-mode", response_model=CoachModePayload)
def set_coach_mode(payload: CoachModePayload, db: Session = Depends(get_db)):
    return CoachModePayload(coach_mode=BudgetConfigService(db).set_coach_mode(payload.coach_mode))
