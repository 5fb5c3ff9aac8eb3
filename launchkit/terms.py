import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from launchkit.exceptions import AcceptanceConflictError, TermsNotFoundError, TermsVersionExistsError
from launchkit.extensions import db
from launchkit.models import Terms, UserTermsAcceptance
from launchkit.services.user_service import ensure_user_record

logger = logging.getLogger(__name__)

INITIAL_TERMS_VERSION = "1.0.0"
DEFAULT_TERMS_PATH = Path("legal") / "terms-of-service-v1.md"


def get_current_terms() -> Optional[Terms]:
    """Return the current terms, or None if no version is marked current."""
    return Terms.query.filter_by(is_current=True).first()


def get_all_terms_versions() -> List[Terms]:
    """All terms versions, newest effective date first."""
    return Terms.query.order_by(Terms.effective_date.desc()).all()


def terms_version_exists(version: str) -> bool:
    return Terms.query.filter_by(version=version).first() is not None


def find_acceptance(user_id: str, terms_id: str) -> Optional[UserTermsAcceptance]:
    return UserTermsAcceptance.query.filter_by(user_id=str(user_id), terms_id=terms_id).first()


def check_user_needs_to_accept_terms(user_id: str) -> bool:
    """
    True if the user has not accepted the current terms.
    Returns False when no terms are current, so nothing blocks the user.
    """
    current = get_current_terms()
    if current is None:
        return False
    return find_acceptance(user_id, current.id) is None


def get_terms_status(user_id: str) -> dict:
    """
    Current terms plus whether ``user_id`` still has to accept them.
    Raises TermsNotFoundError when no version is current.
    """
    current = get_current_terms()
    if current is None:
        raise TermsNotFoundError("No current terms found")
    acceptance = find_acceptance(user_id, current.id)
    return {
        "needsAcceptance": acceptance is None,
        "currentTerms": current.to_public_dict(),
    }


def accept_terms(identity, terms_id: str, ip_address: str) -> dict:
    """
    Record that ``identity`` accepted ``terms_id``.

    Idempotent: a second call for the same (user, terms) pair writes nothing and
    reports alreadyAccepted=True. Two concurrent first calls collide on the
    unique constraint; the loser re-reads and reports alreadyAccepted=True.
    """
    user_id = str(identity.id)
    terms = Terms.query.filter_by(id=terms_id, is_current=True).first()
    if terms is None:
        raise TermsNotFoundError("Terms not found or not current")

    if find_acceptance(user_id, terms.id) is not None:
        return {"success": True, "alreadyAccepted": True}

    # The session may carry an identity with no user row (developer bypass).
    ensure_user_record(identity)

    acceptance = UserTermsAcceptance(
        user_id=user_id,
        terms_id=terms.id,
        ip_address=(ip_address or "unknown")[:64],
        accepted_at=datetime.utcnow(),
    )
    db.session.add(acceptance)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if find_acceptance(user_id, terms.id) is not None:
            logger.info("[TERMS] concurrent acceptance resolved user_id=%s terms=%s", user_id, terms.version)
            return {"success": True, "alreadyAccepted": True}
        raise AcceptanceConflictError()

    logger.info("[TERMS] accepted user_id=%s terms=%s", user_id, terms.version)
    return {"success": True, "alreadyAccepted": False}


def get_user_acceptances(user_id: str) -> List[dict]:
    """Acceptance history for ``user_id``, most recent first."""
    rows = (
        db.session.query(UserTermsAcceptance, Terms)
        .join(Terms, UserTermsAcceptance.terms_id == Terms.id)
        .filter(UserTermsAcceptance.user_id == str(user_id))
        .order_by(UserTermsAcceptance.accepted_at.desc())
        .all()
    )
    return [
        {
            "id": acceptance.id,
            "userId": acceptance.user_id,
            "termsId": acceptance.terms_id,
            "ipAddress": acceptance.ip_address,
            "acceptedAt": acceptance.accepted_at.isoformat(),
            "terms": {
                "version": terms.version,
                "effectiveDate": terms.effective_date.isoformat(),
            },
        }
        for acceptance, terms in rows
    ]


def _current_terms_for_update():
    return Terms.query.filter_by(is_current=True).with_for_update()


def publish_terms(version: str, content: str, effective_date: Optional[datetime] = None) -> Terms:
    """
    Publish a new terms version and make it the only current one.
    The flip of the old row and the insert of the new one commit together,
    so readers never observe zero or two current versions.
    """
    if terms_version_exists(version):
        raise TermsVersionExistsError(f"Terms version {version} already exists")
    try:
        if db.session.get_bind().dialect.name == "postgresql":
            # Serialises publishers even when no row is current yet
            db.session.execute(text("LOCK TABLE terms IN SHARE ROW EXCLUSIVE MODE"))
        for row in _current_terms_for_update().all():
            row.is_current = False
        terms = Terms(
            version=version,
            content=content,
            effective_date=effective_date or datetime.utcnow(),
            is_current=True,
        )
        db.session.add(terms)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise TermsVersionExistsError(f"Terms version {version} already exists")
    except Exception:
        db.session.rollback()
        raise
    logger.info("[TERMS] published version=%s", version)
    return terms


def seed_initial_terms(path: Union[str, Path] = DEFAULT_TERMS_PATH) -> Optional[Terms]:
    """
    Create terms v1.0.0 from a markdown file.
    Returns None (and writes nothing) if v1.0.0 already exists.
    Raises FileNotFoundError if the markdown file is missing.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Terms file not found at: {path}")
    content = path.read_text(encoding="utf-8")

    if terms_version_exists(INITIAL_TERMS_VERSION):
        logger.info("[TERMS] v%s already exists, skipping seed", INITIAL_TERMS_VERSION)
        return None

    terms = Terms(
        version=INITIAL_TERMS_VERSION,
        content=content,
        effective_date=datetime.utcnow(),
        is_current=True,
    )
    db.session.add(terms)
    db.session.commit()
    logger.info("[TERMS] seeded v%s", INITIAL_TERMS_VERSION)
    return terms
