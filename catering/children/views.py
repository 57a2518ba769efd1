from fastapi import APIRouter, Depends
from typing import Dict, Any

from catering.utils.security import require_user
from catering.children import repository as children_repository

router = APIRouter(prefix="/api/v1/children", tags=["Children API"])

# module catering.children.views
@router.get("")
def api_list_children(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """Enfants du parent connecté (sélecteur du checkout)."""
    children = children_repository.list_children(user.get("id"), user_token=user.get("token"))
    return {"children": children}
