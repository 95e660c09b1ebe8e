"""Shop session service - stores per-shop access credentials."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from addons_app.exceptions import NotAuthenticatedError, NotFoundError
from addons_app.models import ShopSession

logger = logging.getLogger(__name__)


class SessionService:
    """Service for managing installed shops."""

    def get_session(self, db: Session, shop: str) -> Optional[ShopSession]:
        """Get a stored session by shop domain."""
        return db.query(ShopSession).filter(ShopSession.shop == shop).first()

    def require_session(self, db: Session, shop: str) -> ShopSession:
        session = self.get_session(db, shop)
        if not session or not session.access_token:
            raise NotAuthenticatedError(f"Shop {shop} is not authenticated")
        return session

    def store_session(
        self,
        db: Session,
        shop: str,
        access_token: str,
        scope: Optional[str] = None,
        domain: Optional[str] = None
    ) -> ShopSession:
        """Create or replace the session of a shop."""
        session = self.get_session(db, shop)

        if session:
            session.access_token = access_token
            session.scope = scope
            if domain is not None:
                session.domain = domain
        else:
            session = ShopSession(
                shop=shop,
                access_token=access_token,
                scope=scope,
                domain=domain
            )
            db.add(session)

        db.commit()
        db.refresh(session)
        logger.info("Stored session for shop %s", shop)
        return session

    def resolve_domain(self, db: Session, domain: str) -> str:
        """Map a storefront domain to the myshopify domain of an installed shop."""
        domain = domain.strip().lower()
        if domain.endswith(".myshopify.com"):
            return domain

        candidates = {domain}
        if domain.startswith("www."):
            candidates.add(domain[4:])
        else:
            candidates.add(f"www.{domain}")

        session = db.query(ShopSession).filter(ShopSession.domain.in_(candidates)).first()
        if not session:
            raise NotFoundError(f"No installed shop for domain {domain}")
        return session.shop


# Singleton instance
session_service = SessionService()
