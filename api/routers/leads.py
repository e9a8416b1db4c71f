"""
Lead Pool API Endpoints.

Read-only view of how many leads are free vs assigned, per state.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_order_controller
from api.models import LeadPoolStateResponse, LeadPoolSummaryResponse
from domain.errors import PersistenceError
from services.order_lifecycle_service import OrderLifecycleController

router = APIRouter()


@router.get(
    "/leads/summary",
    response_model=LeadPoolSummaryResponse,
    summary="Lead Pool Summary",
    description="Free and assigned lead counts per state."
)
def get_lead_pool_summary(
    controller: OrderLifecycleController = Depends(get_order_controller),
):
    try:
        summaries = controller.lead_pool_summary()
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return LeadPoolSummaryResponse(
        states=[
            LeadPoolStateResponse(
                state=s.state,
                free_count=s.free_count,
                bound_count=s.bound_count,
                total_count=s.total_count,
            )
            for s in summaries
        ],
        free_count=sum(s.free_count for s in summaries),
        bound_count=sum(s.bound_count for s in summaries),
    )
