"""
Scheduled job trigger. Protected by CRON_SECRET, not by user tokens.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.api.deps import verify_cron_secret
from gymbook.db.session import get_db
from gymbook.schemas.common import ActionResult
from gymbook.schemas.conflict import GenerationResultResponse
from gymbook.services.cache_service import invalidate_slot_cache
from gymbook.services.session_generator import generate_all_sessions

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route(
    "/generate-sessions",
    methods=["GET", "POST"],
    response_model=ActionResult[GenerationResultResponse],
)
async def generate_sessions(
    weeks_ahead: Optional[int] = Query(None, ge=1, le=26),
    db: AsyncSession = Depends(get_db),
):
    """Materialize recurring bookings up to the horizon and close past sessions."""
    result = await generate_all_sessions(db, weeks_ahead=weeks_ahead)
    await invalidate_slot_cache()
    return ActionResult[GenerationResultResponse](
        data=GenerationResultResponse.model_validate(asdict(result)),
        message=f"Generated {result.total_generated} session(s)",
    )
