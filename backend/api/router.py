from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from models.requests import CycleInput, NormalizeRequest, RecommendationRequest
from models.responses import CycleDiagnostic, RecommendationResponse
from models.schemas.indicator import IndicatorScore
from services.errors import ConfigurationError, InsufficientDataError
from services.pipeline import orchestrator
from services.pipeline.engine_registry import get_engine

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/diagnostics/evaluate", response_model=CycleDiagnostic)
@limiter.limit("30/minute")
async def evaluate(request: Request, body: CycleInput):
    try:
        return orchestrator.evaluate_cycle(body)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InsufficientDataError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/diagnostics/normalize", response_model=IndicatorScore | None)
@limiter.limit("60/minute")
async def normalize(request: Request, body: NormalizeRequest):
    try:
        return get_engine("s1_normalizer").predict(
            indicator=body.indicator,
            raw_value=body.value_raw,
            min_ref_override=body.min_ref_override,
            max_ref_override=body.max_ref_override,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/recommendations", response_model=RecommendationResponse)
@limiter.limit("30/minute")
async def recommendations(request: Request, body: RecommendationRequest):
    if body.profile is not None and body.indicator_codes is not None:
        raise HTTPException(status_code=400, detail="Send a profile or indicator codes, not both")

    results = get_engine("s5_relevance_scorer").predict(
        candidates=body.candidates,
        profile=body.profile,
        indicator_codes=body.indicator_codes,
        limit=body.limit,
    )
    mode = "indicators" if body.indicator_codes is not None else "profile"
    return RecommendationResponse(results=results, mode=mode)
