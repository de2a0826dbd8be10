"""
FastAPI Backend for Life Chart (人生K线)

Provides RESTful API endpoints for the chart front-end.
"""
import time
from typing import Optional, List, Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from life_chart import (
    BirthRecord,
    InvalidBirthMoment,
    MajorEvent,
    build_structure,
    compute_life_chart,
)
from life_chart import __version__

# --- Pydantic Models for Request/Response ---

class MajorEventInput(BaseModel):
    """A user-declared life event."""
    year: int = Field(..., ge=1900, le=2200, description="Calendar year of the event")
    event: str = Field(..., max_length=200, description="Short description of the event")
    sentiment: str = Field("neutral", pattern="^(positive|negative|neutral)$", description="Event sentiment")


class BirthData(BaseModel):
    """Birth data for the life chart."""
    name: Optional[str] = Field(None, max_length=50, description="Display name")
    gender: str = Field(..., pattern="^(male|female|男|女)$", description="Gender (male/female/男/女)")
    birth_year: int = Field(..., ge=1900, le=2100, description="Year of birth (e.g., 1990)")
    birth_month: int = Field(..., ge=1, le=12, description="Month of birth (1-12)")
    birth_day: int = Field(..., ge=1, le=31, description="Day of birth (1-31)")
    birth_hour: int = Field(..., ge=0, le=23, description="Hour of birth (0-23)")
    birth_minute: int = Field(0, ge=0, le=59, description="Minute of birth (0-59)")
    birth_location: Optional[str] = Field(None, description="Birthplace name")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Longitude for true solar time correction")
    major_events: List[MajorEventInput] = Field(default_factory=list, description="Major life events")


class ChartStructureResponse(BaseModel):
    """Response for /api/chart endpoint."""
    four_pillars: List[str]
    great_cycles: List[dict]
    start_info: dict
    flow_years: List[dict]
    extra_info: dict


class AnalyzeResponse(BaseModel):
    """Response for /api/analyze endpoint."""
    task_id: str
    status: str
    result: Optional[Any] = None
    error: Optional[str] = None


# --- FastAPI App Initialization ---

app = FastAPI(
    title="人生K线 API",
    description="八字排盘、大运流年与人生K线图数据",
    version=__version__
)

# Configure CORS for web access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Helper Functions ---

def to_birth_record(data: BirthData) -> BirthRecord:
    """Convert the request model into the engine's birth record."""
    return BirthRecord(
        birth_year=data.birth_year,
        birth_month=data.birth_month,
        birth_day=data.birth_day,
        birth_hour=data.birth_hour,
        birth_minute=data.birth_minute,
        gender=data.gender,
        major_events=[
            MajorEvent(year=e.year, description=e.event, sentiment=e.sentiment)
            for e in data.major_events
        ],
        name=data.name,
        birth_location=data.birth_location,
        longitude=data.longitude,
    )


# --- API Endpoints ---

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "人生K线 API is running"}


@app.post("/api/chart", response_model=ChartStructureResponse)
def get_chart(data: BirthData):
    """
    Four Pillars, Great Cycles and flow years without LLM interpretation.
    """
    try:
        structure = build_structure(to_birth_record(data))
    except InvalidBirthMoment as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ChartStructureResponse(**structure.to_dict())


@app.post("/api/analyze", response_model=AnalyzeResponse)
def analyze(data: BirthData):
    """
    Full life chart: deterministic calendar, LLM narrative (or mock data when
    the LLM is unavailable) and hard constraints from the major events.
    """
    task_id = f"task_{int(time.time() * 1000)}"
    try:
        result = compute_life_chart(to_birth_record(data))
    except InvalidBirthMoment as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        print(f"ERROR: Analysis failed: {e}", flush=True)
        raise HTTPException(status_code=500, detail=f"Analysis error: {str(e)}")

    return AnalyzeResponse(task_id=task_id, status="completed", result=result, error=None)


# --- Run with: uvicorn main:app --reload ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
