"""Registration requests — users applying for an agent, agency or promoter role."""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_active_user, get_db, get_notifier
from marketplace.models.user import User
from marketplace.schemas.registration import RegistrationCreate, RegistrationResponse
from marketplace.services import registration_service
from marketplace.services.notifications import Notifier

router = APIRouter(prefix="/api/v1/registration-requests", tags=["registration"])


@router.post("", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def submit_registration_request(
    body: RegistrationCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    notifier: Notifier = Depends(get_notifier),
) -> RegistrationResponse:
    """Apply for a role. Admins review the request under ``/admin/registration-requests``."""
    request = await registration_service.submit_request(db, current_user, body, notifier)
    background_tasks.add_task(notifier.dispatch)
    return RegistrationResponse.model_validate(request)
