import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from app.common.mixins import utcnow
from app.common.validators import to_money
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.schemas import AuthContext
from app.modules.inventory.models import (
    InventoryCategory, InventoryItem, ItemType, MovementType, StockMovement, signed_effect
)
from app.modules.inventory.schemas import (
    InventoryCategoryCreate, InventoryItemCreate, InventoryItemUpdate, InventoryOverview, StockMovementCreate,
    StockMovementOut
)

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Inventory ledger and item catalogue.

    `apply_movement` is the only code path that changes
    InventoryItem.quantity. It flushes but never commits so callers can fold
    stock effects into a larger transaction (tracked items, orders).
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def lock_item(self, item_id: UUID, company_id: Optional[UUID] = None) -> InventoryItem:
        """Load an item with a row lock, refreshed from committed state."""
        self.db.flush()
        query = self.db.query(InventoryItem).filter(InventoryItem.id == item_id)
        if company_id is not None:
            query = query.filter(InventoryItem.company_id == company_id)
        item = query.with_for_update().populate_existing().first()
        if not item:
            raise NotFoundError("Inventory item not found")
        return item

    def apply_movement(
        self,
        item: InventoryItem,
        movement_type: MovementType,
        quantity: int,
        cost_price: Optional[Decimal] = None,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        created_by: Optional[UUID] = None
    ) -> StockMovement:
        """Append a movement and update the cached quantity. `item` must be locked."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Quantity must be an integer")
        if movement_type == MovementType.ADJUSTMENT:
            if quantity == 0:
                raise ValidationError("Adjustment quantity cannot be zero")
        elif quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")

        if movement_type == MovementType.SALE and not item.is_active:
            raise ValidationError(f"Item '{item.name}' is inactive and cannot be sold")

        effect = signed_effect(movement_type, quantity)
        new_quantity = item.quantity + effect
        if new_quantity < 0:
            logger.warning(
                f"Rejected {movement_type.value} of {abs(effect)} on item {item.id}: {item.quantity} on hand"
            )
            raise InsufficientStockError(item.name, item.quantity, abs(effect))

        movement = StockMovement(
            company_id=item.company_id,
            item_id=item.id,
            movement_type=movement_type,
            quantity=quantity,
            cost_price=cost_price,
            reason=reason,
            reference=reference,
            created_by=created_by
        )
        item.quantity = new_quantity
        item.last_stock_update = utcnow()

        self.db.add(movement)
        self.db.flush()

        logger.info(
            f"Stock movement {movement.movement_type.value} {effect:+d} on item {item.id} "
            f"-> {item.quantity} on hand (ref={reference})"
        )
        return movement

    def record_movement(self, movement_data: StockMovementCreate, auth: AuthContext) -> StockMovement:
        """Standalone movement (purchase, manual adjustment, transfer out...)."""
        try:
            item = self.lock_item(movement_data.item_id)
            ensure_company_access(auth, item.company_id, "Inventory item")

            movement = self.apply_movement(
                item,
                movement_data.movement_type,
                movement_data.quantity,
                cost_price=movement_data.cost_price,
                reason=movement_data.reason,
                reference=movement_data.reference,
                created_by=auth.user_id
            )
            self.db.commit()
            self.db.refresh(movement)
            return movement

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error recording stock movement for item {movement_data.item_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error recording stock movement: {str(e)}"
            )

    def list_movements(
        self,
        company_id: UUID,
        item_id: Optional[UUID] = None,
        movement_type: Optional[MovementType] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[StockMovement]:
        query = self.db.query(StockMovement).filter(StockMovement.company_id == company_id)
        if item_id:
            query = query.filter(StockMovement.item_id == item_id)
        if movement_type:
            query = query.filter(StockMovement.movement_type == movement_type)

        query = query.order_by(StockMovement.created_at.desc()).offset(offset).limit(limit)
        return retry_read(self.db, query.all)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, company_id: UUID, category_data: InventoryCategoryCreate) -> InventoryCategory:
        existing = self.db.query(InventoryCategory).filter(
            and_(
                InventoryCategory.company_id == company_id,
                InventoryCategory.name == category_data.name
            )
        ).first()
        if existing:
            raise ConflictError(f"Category '{category_data.name}' already exists")

        category = InventoryCategory(
            company_id=company_id,
            name=category_data.name,
            description=category_data.description
        )
        try:
            self.db.add(category)
            self.db.commit()
            self.db.refresh(category)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Category '{category_data.name}' already exists")

        logger.info(f"Inventory category {category.id} created in company {company_id}")
        return category

    def list_categories(self, company_id: UUID) -> List[InventoryCategory]:
        query = self.db.query(InventoryCategory).filter(
            InventoryCategory.company_id == company_id
        ).order_by(InventoryCategory.name)
        return retry_read(self.db, query.all)

    def _check_category(self, company_id: UUID, category_id: Optional[UUID]) -> None:
        if category_id is None:
            return
        category = self.db.query(InventoryCategory).filter(
            and_(InventoryCategory.id == category_id, InventoryCategory.company_id == company_id)
        ).first()
        if not category:
            raise NotFoundError("Inventory category not found")

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def create_item(self, company_id: UUID, item_data: InventoryItemCreate, auth: AuthContext) -> InventoryItem:
        """Create an item; a non-zero initial quantity enters through the ledger."""
        self._check_category(company_id, item_data.category_id)

        try:
            item = InventoryItem(
                company_id=company_id,
                category_id=item_data.category_id,
                name=item_data.name,
                sku=item_data.sku,
                price=item_data.price,
                critical_threshold=item_data.critical_threshold,
                item_type=item_data.item_type,
                quantity=0,
                is_active=True
            )
            self.db.add(item)
            self.db.flush()

            if item_data.initial_quantity > 0:
                self.apply_movement(
                    item,
                    MovementType.ADJUSTMENT,
                    item_data.initial_quantity,
                    cost_price=item_data.cost_price,
                    reason="Initial stock",
                    created_by=auth.user_id
                )

            self.db.commit()
            self.db.refresh(item)

        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"An item with SKU '{item_data.sku}' already exists")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating inventory item: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating inventory item: {str(e)}"
            )

        logger.info(f"Inventory item {item.id} '{item.name}' created in company {company_id}")
        return item

    def get_item(self, item_id: UUID, auth: AuthContext) -> InventoryItem:
        item = retry_read(
            self.db,
            lambda: self.db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
        )
        if not item:
            raise NotFoundError("Inventory item not found")
        ensure_company_access(auth, item.company_id, "Inventory item")
        return item

    def list_items(
        self,
        company_id: UUID,
        category_id: Optional[UUID] = None,
        is_active: Optional[bool] = None,
        item_type: Optional[ItemType] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[InventoryItem]:
        query = self.db.query(InventoryItem).filter(InventoryItem.company_id == company_id)

        if category_id:
            query = query.filter(InventoryItem.category_id == category_id)
        if is_active is not None:
            query = query.filter(InventoryItem.is_active == is_active)
        if item_type:
            query = query.filter(InventoryItem.item_type == item_type)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(InventoryItem.name.ilike(pattern), InventoryItem.sku.ilike(pattern)))

        query = query.order_by(InventoryItem.name).offset(offset).limit(limit)
        return retry_read(self.db, query.all)

    def get_low_stock_items(self, company_id: UUID) -> List[InventoryItem]:
        """Active items at or below their critical threshold."""
        query = self.db.query(InventoryItem).filter(
            and_(
                InventoryItem.company_id == company_id,
                InventoryItem.is_active.is_(True),
                InventoryItem.quantity <= InventoryItem.critical_threshold
            )
        ).order_by(InventoryItem.quantity)
        return retry_read(self.db, query.all)

    def get_overview(self, company_id: UUID, recent: int = 5) -> InventoryOverview:
        """Catalogue counts, retail value of stock on hand and the latest movements."""
        def count(model, *criteria):
            query = self.db.query(func.count(model.id)).filter(model.company_id == company_id, *criteria)
            return retry_read(self.db, query.scalar)

        active = InventoryItem.is_active.is_(True)
        stock_value = self.db.query(
            func.coalesce(func.sum(InventoryItem.price * InventoryItem.quantity), 0)
        ).filter(InventoryItem.company_id == company_id, active)

        return InventoryOverview(
            categories_count=count(InventoryCategory),
            items_count=count(InventoryItem),
            low_stock_items_count=count(InventoryItem, active, InventoryItem.quantity <= InventoryItem.critical_threshold),
            stock_value=to_money(retry_read(self.db, stock_value.scalar)),
            recent_movements=[
                StockMovementOut.model_validate(movement)
                for movement in self.list_movements(company_id, limit=recent)
            ]
        )

    def update_item(self, item_id: UUID, item_data: InventoryItemUpdate, auth: AuthContext) -> InventoryItem:
        item = self.get_item(item_id, auth)
        update_data = item_data.model_dump(exclude_unset=True)

        if "category_id" in update_data:
            self._check_category(item.company_id, update_data["category_id"])

        try:
            for field, value in update_data.items():
                setattr(item, field, value)
            self.db.commit()
            self.db.refresh(item)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"An item with SKU '{item_data.sku}' already exists")

        logger.info(f"Inventory item {item.id} updated")
        return item

    def toggle_active(self, item_id: UUID, auth: AuthContext) -> InventoryItem:
        item = self.get_item(item_id, auth)
        item.is_active = not item.is_active
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Inventory item {item.id} is_active={item.is_active}")
        return item
