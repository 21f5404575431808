"""
Category API endpoints.
"""

from fastapi import APIRouter, Depends, Response

from backend.dependencies import get_record_store, require_user
from backend.schemas import CategoryCreate, CategoryResponse, CategoryListResponse
from timetrack.store.record_store import RecordStore
from timetrack.utils.validation import sanitize_input, validate_category

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    categories = store.list_categories(user_id)
    return CategoryListResponse(
        categories=[CategoryResponse(**c.to_dict()) for c in categories],
        total=len(categories),
    )


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    category: CategoryCreate,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    validate_category(category.name, category.color).raise_if_invalid()
    created = store.create_category(user_id, sanitize_input(category.name), category.color)
    return CategoryResponse(**created.to_dict())


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: str,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    store.delete_category(user_id, category_id)
    return Response(status_code=204)
