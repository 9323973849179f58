from __future__ import annotations

import sys
from dataclasses import asdict
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from errors import InvalidInputError
from models import CameraSnapshot, GeoPoint, MatchCandidate, RestaurantPoint
from services.awards import award_filter_options
from services.candidate_search import CandidateAggregator
from services.dataset import InMemoryDataset
from services.geoapify import GeoapifyNearbySource
from services.google_places import GooglePlacesSource
from services.nearby_cache import NearbySearchCache
from services.ranking import RankingPolicy, query_viewport
from services.viewport import viewport_bounds

load_dotenv()

app = FastAPI(title="Restaurant Resolver")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ResolverState:
    def __init__(self, cfg: Configuration, dataset: InMemoryDataset, aggregator: CandidateAggregator) -> None:
        self.cfg = cfg
        self.dataset = dataset
        self.aggregator = aggregator


_STATE: Optional[ResolverState] = None


def build_state(cfg: Optional[Configuration] = None, dataset: Optional[InMemoryDataset] = None) -> ResolverState:
    cfg = cfg or Configuration.from_env()
    logger.remove()
    logger.add(sys.stderr, level=cfg.log_level.upper())
    logger.info("cfg: {}", cfg.log_summary())

    if dataset is None:
        dataset = InMemoryDataset.from_path(cfg.dataset_path) if cfg.dataset_path else InMemoryDataset([])
    nearby = NearbySearchCache(GeoapifyNearbySource(cfg))
    remote = GooglePlacesSource(
        cfg.google_places_api_key,
        base_url=cfg.google_places_base_url,
        timeout=cfg.google_places_timeout,
    )
    return ResolverState(cfg, dataset, CandidateAggregator(cfg, dataset=dataset, nearby=nearby, remote=remote))


def get_state() -> ResolverState:
    global _STATE
    if _STATE is None:
        _STATE = build_state()
    return _STATE


class CameraPayload(BaseModel):
    latitude: float
    longitude: float
    zoom: float = Field(..., ge=0)


class PointPayload(BaseModel):
    id: str
    name: str
    latitude: float
    longitude: float
    source: str
    award: Optional[str] = None
    cuisine: Optional[str] = None
    address: Optional[str] = None
    visited: bool = False
    distance_m: Optional[float] = None


class BoundsPayload(BaseModel):
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float
    wraps_date_line: bool


class ViewportRequest(BaseModel):
    camera: CameraPayload
    width: float = Field(..., ge=0, description="Viewport width in pixels; 0 means not measured yet")
    height: float = Field(..., ge=0)
    policy: RankingPolicy = Field(..., description='"importance" or "center_distance"')
    award_filter: Optional[str] = Field(None, description='"all", "stars", "bib" or "award:<label>"')
    visited_ids: List[str] = Field(default_factory=list)


class ViewportResponse(BaseModel):
    points: List[PointPayload]
    total_in_view: int
    visible_visited: int
    bounds: Optional[BoundsPayload] = None


class CandidatesRequest(BaseModel):
    latitude: float
    longitude: float
    hint: Optional[str] = Field(None, description="Noisy text hint, e.g. a calendar event title")
    query: Optional[str] = Field(None, description="What the user typed in the search box")
    include_nearby: bool = True
    include_remote: bool = False
    visited_ids: List[str] = Field(default_factory=list)


class CandidatePayload(BaseModel):
    point: PointPayload
    similarity: float
    is_likely_match: bool


class CandidatesResponse(BaseModel):
    candidates: List[CandidatePayload]
    source_counts: Dict[str, int]
    sources_failed: List[str]
    sources_skipped: List[str]
    sort_term: Optional[str] = None
    auto_match_id: Optional[str] = None


def _point_payload(point: RestaurantPoint) -> PointPayload:
    return PointPayload(
        id=point.id,
        name=point.name,
        latitude=point.latitude,
        longitude=point.longitude,
        source=point.source.value,
        award=point.award,
        cuisine=point.cuisine,
        address=point.address,
        visited=point.visited,
        distance_m=point.distance_m,
    )


def _candidate_payload(candidate: MatchCandidate) -> CandidatePayload:
    return CandidatePayload(
        point=_point_payload(candidate.point),
        similarity=round(candidate.similarity, 4),
        is_likely_match=candidate.is_likely_match,
    )


@app.get("/healthz")
def healthz(state: ResolverState = Depends(get_state)) -> dict:
    return {"status": "ok", "restaurants": len(state.dataset)}


@app.post("/viewport", response_model=ViewportResponse)
def viewport(req: ViewportRequest, state: ResolverState = Depends(get_state)) -> ViewportResponse:
    camera = CameraSnapshot(latitude=req.camera.latitude, longitude=req.camera.longitude, zoom=req.camera.zoom)
    try:
        bounds = viewport_bounds(camera, req.width, req.height)
        result = query_viewport(
            state.dataset.all(),
            bounds,
            camera,
            set(req.visited_ids),
            policy=req.policy,
            max_results=state.cfg.max_results_in_view,
            award_filter=req.award_filter,
            min_award_year=state.cfg.min_award_year,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        logger.exception("viewport query failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return ViewportResponse(
        points=[_point_payload(p) for p in result.points_in_view],
        total_in_view=result.total_matching_in_viewport,
        visible_visited=result.visible_visited_count,
        bounds=BoundsPayload(**asdict(bounds)) if bounds is not None else None,
    )


@app.post("/candidates", response_model=CandidatesResponse)
async def candidates(req: CandidatesRequest, state: ResolverState = Depends(get_state)) -> CandidatesResponse:
    try:
        result = await state.aggregator.resolve(
            GeoPoint(latitude=req.latitude, longitude=req.longitude),
            hint=req.hint,
            query=req.query,
            visited_ids=set(req.visited_ids),
            include_nearby=req.include_nearby,
            include_remote=req.include_remote,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        logger.exception("candidate resolution failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return CandidatesResponse(
        candidates=[_candidate_payload(c) for c in result.candidates],
        source_counts=result.source_counts,
        sources_failed=result.sources_failed,
        sources_skipped=result.sources_skipped,
        sort_term=result.sort_term,
        auto_match_id=result.auto_match.id if result.auto_match is not None else None,
    )


@app.get("/awards/filters")
def awards_filters(state: ResolverState = Depends(get_state)) -> dict:
    return {"options": award_filter_options(state.dataset.all())}


@app.get("/cache/stats")
def cache_stats(state: ResolverState = Depends(get_state)) -> dict:
    nearby = state.aggregator.nearby
    return nearby.stats() if nearby is not None else {}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
