import uuid
from typing import List
from loguru import logger
from sqlmodel import Session, select, col
from fastapi import BackgroundTasks

from marketplace.core.audit import _perform_audit_log
from marketplace.core.errors import NotFoundError, DuplicateError, InvalidStateError
from marketplace.db.schema import User, Category, AuditAction
from marketplace.models.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryRead,
    CategoryTreeRead
)


class CategoryService:
    def __init__(self, session: Session):
        self.session = session

    def get_active_category(self, category_id: uuid.UUID) -> Category:
        category = self.session.get(Category, category_id)
        if not category or not category.is_active:
            raise NotFoundError("Category not found")
        return category

    def resolve_categories(self, category_ids: List[uuid.UUID]) -> List[Category]:
        """
        Loads the active categories for a seller profile.
        Every requested id must exist, otherwise nothing is linked.
        """
        unique_ids = list(dict.fromkeys(category_ids))
        categories = self.session.exec(
            select(Category).where(
                col(Category.id).in_(unique_ids),
                Category.is_active == True
            )
        ).all()

        if len(categories) != len(unique_ids):
            raise NotFoundError("One or more categories not found")
        return list(categories)

    def list_categories(self) -> List[CategoryTreeRead]:
        """Active top-level categories, each with its active children."""
        roots = self.session.exec(
            select(Category)
            .where(Category.is_active == True, Category.parent_id == None)
            .order_by(Category.name)
        ).all()

        return [
            CategoryTreeRead(
                **root.model_dump(),
                children=[
                    CategoryRead.model_validate(child)
                    for child in sorted(root.children, key=lambda c: c.name)
                    if child.is_active
                ]
            )
            for root in roots
        ]

    def _check_name(self, name: str, exclude_id: uuid.UUID = None):
        statement = select(Category).where(Category.name == name)
        if exclude_id:
            statement = statement.where(Category.id != exclude_id)
        if self.session.exec(statement).first():
            raise DuplicateError(f"Category '{name}' already exists")

    def create_category(
        self,
        admin: User,
        data: CategoryCreate,
        background_tasks: BackgroundTasks
    ) -> CategoryRead:
        self._check_name(data.name)
        if data.parent_id:
            self.get_active_category(data.parent_id)

        category = Category(**data.model_dump())
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)

        logger.info(f"Category created: {category.name} ({category.id})")

        background_tasks.add_task(
            _perform_audit_log,
            user_id=admin.id,
            entity_type="Category",
            entity_id=category.id,
            action=AuditAction.CREATE,
            changes=data.model_dump(mode='json')
        )
        return CategoryRead.model_validate(category)

    def update_category(
        self,
        admin: User,
        category_id: uuid.UUID,
        data: CategoryUpdate,
        background_tasks: BackgroundTasks
    ) -> CategoryRead:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")

        old_state = category.model_dump(mode='json')
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("name") and update_data["name"] != category.name:
            self._check_name(update_data["name"], exclude_id=category.id)

        parent_id = update_data.get("parent_id")
        if parent_id:
            if parent_id == category.id:
                raise InvalidStateError("A category cannot be its own parent")
            self.get_active_category(parent_id)

        for key, value in update_data.items():
            setattr(category, key, value)

        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)

        changes = {k: {"old": old_state.get(k), "new": v}
                   for k, v in data.model_dump(mode='json', exclude_unset=True).items()}

        background_tasks.add_task(
            _perform_audit_log,
            user_id=admin.id,
            entity_type="Category",
            entity_id=category.id,
            action=AuditAction.UPDATE,
            changes=changes
        )
        return CategoryRead.model_validate(category)
