"""Inventory routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role
from school_erp.models.expense import InventoryItem
from school_erp.models.user import User
from school_erp.schemas.expense import InventoryItemCreate, InventoryItemResponse, InventoryItemUpdate
from school_erp.services import excel as excel_service
from school_erp.services import expense as expense_service

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


async def get_item_or_404(db: AsyncSession, item_id: UUID, school_id: UUID) -> InventoryItem:
    item = await expense_service.get_item_by_id(db, item_id, school_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inventory item not found",
        )
    return item


@router.get("/export")
async def export_inventory(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    category: str | None = None,
) -> StreamingResponse:
    """Download the inventory as an Excel workbook."""
    items = await expense_service.get_items(db, current_user.school_id, category)
    buffer = excel_service.inventory_workbook(items)
    return StreamingResponse(
        buffer,
        media_type=excel_service.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="inventory.xlsx"'},
    )


@router.get("", response_model=list[InventoryItemResponse])
async def list_items(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    category: str | None = None,
) -> list[InventoryItemResponse]:
    items = await expense_service.get_items(db, current_user.school_id, category)
    return [InventoryItemResponse.model_validate(i) for i in items]


@router.post("", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: InventoryItemCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> InventoryItemResponse:
    item = await expense_service.create_item(db, current_user.school_id, item_data)
    return InventoryItemResponse.model_validate(item)


@router.patch("/{item_id}", response_model=InventoryItemResponse)
async def update_item(
    item_id: UUID,
    item_data: InventoryItemUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> InventoryItemResponse:
    item = await get_item_or_404(db, item_id, current_user.school_id)
    item = await expense_service.update_item(db, item, item_data)
    return InventoryItemResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> None:
    item = await get_item_or_404(db, item_id, current_user.school_id)
    await expense_service.delete_item(db, item)
