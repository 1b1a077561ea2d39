from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Optional, List


class ReflectionSubmit(BaseModel):
    text: str = Field(..., description="Free-text reflection")


class ReflectionSubmitResponse(BaseModel):
    points_earned: int
    depth_category: str
    feedback_message: str
    activated_chakras: List[int]
    newly_activated_chakras: List[int] = []
    themes: List[str] = []
    emotional_depth: float
    self_awareness: float
    new_streak: int
    energy_points: int
    replayed: bool = False


class ChakraActivateResponse(BaseModel):
    chakra_index: int
    chakra_name: str
    already_activated: bool
    points_earned: Optional[int] = None
    new_streak: Optional[int] = None
    energy_points: Optional[int] = None
    activated_chakras: List[int] = []


class RecalibrateRequest(BaseModel):
    reflection_text: str = Field(..., description="Reflection on the missed days")


class RecalibrateResponse(BaseModel):
    none_needed: bool = False
    recalibrated_days: List[int] = []
    points_earned: int = 0
    new_streak: Optional[int] = None
    energy_points: Optional[int] = None


class ProgressResponse(BaseModel):
    activated_today: List[int]
    activated_this_week: List[int]
    current_streak: int
    longest_streak: int
    energy_points: int
    is_at_risk: bool
    message: str
    celebration: Optional[str] = None


class ReflectionEntryResponse(BaseModel):
    id: UUID
    created_at: datetime
    word_count: int
    dominant_theme: Optional[str] = None
    themes: List[str] = []
    emotional_depth: float
    self_awareness: float
    depth_category: str
    points_earned: int
    chakras_activated: List[int] = []

    model_config = ConfigDict(from_attributes=True)
