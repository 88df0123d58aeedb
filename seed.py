from loguru import logger
from sqlmodel import Session, select
from marketplace.core.config import settings
from marketplace.db.core import engine
from marketplace.db.schema import Category, User, UserRole, UserStatus
from marketplace.services.password import get_password_hash


# 1. Top-level catalogue categories
DEFAULT_CATEGORIES = {
    "Fruits": "Fresh organic fruits",
    "Vegetables": "Fresh organic vegetables",
    "Grains": "Organic grains and cereals",
    "Dairy": "Organic dairy products",
    "Herbs & Spices": "Organic herbs and spices",
}


def seed_categories(session: Session):
    """Creates categories if they don't exist."""
    logger.info("--- Seeding Categories ---")

    for name, description in DEFAULT_CATEGORIES.items():
        category = session.exec(
            select(Category).where(Category.name == name)).first()
        if not category:
            session.add(Category(name=name, description=description))
            logger.info(f"Created Category: {name}")
        else:
            logger.info(f"Existing Category: {name}")


def seed_admin(session: Session):
    """Creates the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD."""
    logger.info("--- Seeding Admin ---")

    if not settings.admin_password:
        logger.warning("ADMIN_PASSWORD not set, skipping admin account")
        return

    admin = session.exec(
        select(User).where(User.email == settings.admin_email)).first()
    if admin:
        logger.info(f"Existing Admin: {admin.email}")
        return

    session.add(User(
        email=settings.admin_email,
        hashed_password=get_password_hash(settings.admin_password),
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE
    ))
    logger.info(f"Created Admin: {settings.admin_email}")


def main():
    # Tables are created by Alembic: `alembic upgrade head`

    with Session(engine) as session:
        try:
            seed_categories(session)
            seed_admin(session)

            session.commit()
            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
