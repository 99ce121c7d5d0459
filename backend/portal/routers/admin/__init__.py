"""Admin router package -- aggregates all back-office sub-routers.

Every route here requires the ``access_admin`` permission; individual
services enforce the finer-grained permission for each operation.
"""

from fastapi import APIRouter, Depends

from portal.deps import require_permission
from portal.services.access_control import Permission

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_permission(Permission.ACCESS_ADMIN))],
)

from .applications import router as applications_router  # noqa: E402
from .forms import router as forms_router  # noqa: E402
from .roles import router as roles_router  # noqa: E402
from .settings import router as settings_router  # noqa: E402
from .sync import router as sync_router  # noqa: E402
from .users import router as users_router  # noqa: E402

router.include_router(applications_router)
router.include_router(users_router)
router.include_router(roles_router)
router.include_router(forms_router)
router.include_router(settings_router)
router.include_router(sync_router)
