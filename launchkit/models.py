import uuid
from datetime import datetime
from sqlalchemy.orm import relationship
from flask_login import UserMixin

from launchkit.extensions import db


def new_id() -> str:
    return str(uuid.uuid4())


class User(db.Model, UserMixin):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(320), unique=True, nullable=True)
    name = db.Column(db.String(100))
    image = db.Column(db.String(512))
    password_hash = db.Column(db.String(255), nullable=True)
    email_verified_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    terms_acceptances = relationship(
        "UserTermsAcceptance",
        cascade="all, delete-orphan",
        backref="user",
        lazy=True,
    )

    @property
    def first_name(self) -> str:
        return (self.name or "").split(" ")[0]

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"


class Terms(db.Model):
    """
    A versioned Terms of Service document.
    Only is_current ever changes after insert; see launchkit.terms.publish_terms.
    """

    __tablename__ = "terms"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    version = db.Column(db.String(32), unique=True, nullable=False)
    content = db.Column(db.Text, nullable=False)
    effective_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    is_current = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    acceptances = relationship("UserTermsAcceptance", backref="terms", lazy=True)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "version": self.version,
            "content": self.content,
            "effectiveDate": self.effective_date.isoformat(),
        }

    def __repr__(self):
        return f"<Terms version={self.version} current={self.is_current}>"


class UserTermsAcceptance(db.Model):
    __tablename__ = "user_terms_acceptance"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    terms_id = db.Column(db.String(36), db.ForeignKey("terms.id"), nullable=False)
    ip_address = db.Column(db.String(64), nullable=False, default="unknown")
    accepted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "terms_id", name="uq_user_terms_acceptance_user_terms"),
        db.Index("ix_user_terms_acceptance_user_accepted", "user_id", "accepted_at"),
    )

    def __repr__(self):
        return f"<UserTermsAcceptance user_id={self.user_id} terms_id={self.terms_id}>"
