import uuid
from loguru import logger
from sqlmodel import Session, select

from marketplace.core.errors import NotFoundError, DuplicateError
from marketplace.db.schema import User, BuyerProfile, SellerProfile
from marketplace.models.profile import (
    BuyerProfileCreate,
    BuyerProfileUpdate,
    BuyerProfileRead,
    SellerProfileCreate,
    SellerProfileUpdate,
    SellerProfileRead,
    PublicSellerProfileRead
)
from marketplace.services.category import CategoryService


class ProfileService:
    def __init__(self, session: Session):
        self.session = session

    def _get_buyer_profile(self, user: User) -> BuyerProfile:
        profile = self.session.exec(
            select(BuyerProfile).where(BuyerProfile.user_id == user.id)
        ).first()
        if not profile:
            raise NotFoundError("Buyer profile not found")
        return profile

    def get_seller_profile_for(self, user: User) -> SellerProfile:
        """Resolves the SellerProfile acting for 'user'. Used by every seller workflow."""
        profile = self.session.exec(
            select(SellerProfile).where(SellerProfile.user_id == user.id)
        ).first()
        if not profile:
            raise NotFoundError("Seller profile not found")
        return profile

    # ==========================================================================
    # BUYER
    # ==========================================================================

    def create_buyer_profile(self, user: User, data: BuyerProfileCreate) -> BuyerProfileRead:
        existing = self.session.exec(
            select(BuyerProfile).where(BuyerProfile.user_id == user.id)
        ).first()
        if existing:
            raise DuplicateError("Buyer profile already exists")

        profile = BuyerProfile(user_id=user.id, **data.model_dump())
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return BuyerProfileRead.model_validate(profile)

    def get_buyer_profile(self, user: User) -> BuyerProfileRead:
        return BuyerProfileRead.model_validate(self._get_buyer_profile(user))

    def update_buyer_profile(self, user: User, data: BuyerProfileUpdate) -> BuyerProfileRead:
        """Upsert: creates the profile when the buyer has none yet."""
        profile = self.session.exec(
            select(BuyerProfile).where(BuyerProfile.user_id == user.id)
        ).first()

        if profile:
            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(profile, key, value)
        else:
            profile = BuyerProfile(user_id=user.id, **data.model_dump())

        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return BuyerProfileRead.model_validate(profile)

    # ==========================================================================
    # SELLER
    # ==========================================================================

    def create_seller_profile(self, user: User, data: SellerProfileCreate) -> SellerProfileRead:
        existing = self.session.exec(
            select(SellerProfile).where(SellerProfile.user_id == user.id)
        ).first()
        if existing:
            raise DuplicateError("Seller profile already exists")

        categories = CategoryService(
            self.session).resolve_categories(data.categories)

        profile = SellerProfile(
            user_id=user.id,
            categories=categories,
            **data.model_dump(exclude={"categories"})
        )
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)

        logger.info(f"Seller profile created: {profile.company_name} ({profile.id})")
        return SellerProfileRead.model_validate(profile)

    def get_seller_profile(self, user: User) -> SellerProfileRead:
        return SellerProfileRead.model_validate(self.get_seller_profile_for(user))

    def update_seller_profile(self, user: User, data: SellerProfileUpdate) -> SellerProfileRead:
        """
        Partial update. A supplied 'categories' list replaces every category
        link, in the same transaction as the field changes.
        """
        profile = self.get_seller_profile_for(user)
        update_data = data.model_dump(exclude_unset=True, exclude={"categories"})

        try:
            for key, value in update_data.items():
                setattr(profile, key, value)

            if data.categories is not None:
                profile.categories = CategoryService(
                    self.session).resolve_categories(data.categories)

            self.session.add(profile)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(profile)
        return SellerProfileRead.model_validate(profile)

    def get_public_seller_profile(self, seller_id: uuid.UUID) -> PublicSellerProfileRead:
        """Only verified sellers are visible on the storefront."""
        profile = self.session.get(SellerProfile, seller_id)
        if not profile or not profile.is_verified:
            raise NotFoundError("Seller profile not found")
        return PublicSellerProfileRead.model_validate(profile)
