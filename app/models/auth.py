"""
Auth models — application users.

Users are referenced by projects (manager), tasks (assignee / creator),
risks (owner / assessor), change requests (requester) and activity logs;
they are never owned by a project.
"""

from app.models import db
from app.models.base import TimestampedModel, iso

USER_ROLES = ("ADMIN", "MANAGER", "MEMBER")


class User(TimestampedModel):
    __tablename__ = "users"

    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)  # bcrypt, never serialised
    name = db.Column(db.String(200))
    avatar = db.Column(db.String(500))
    role = db.Column(db.String(20), nullable=False, default="MEMBER")
    active_status = db.Column(db.Boolean, nullable=False, default=True)
    last_password_update = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "avatar": self.avatar,
            "role": self.role,
            "activeStatus": self.active_status,
            "lastPasswordUpdate": iso(self.last_password_update),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def to_summary(self):
        """Compact representation embedded in other resources and GET /users."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "avatar": self.avatar,
            "role": self.role,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.username}>"
