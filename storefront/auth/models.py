import enum
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from storefront import db


class RoleEnum(enum.Enum):
    customer = "customer"
    admin    = "admin"


class User(db.Model):
    """A shopper account. Signed-in shoppers get a durable cart."""
    __tablename__ = 'users'

    id            = db.Column(db.Integer, primary_key=True)
    name          = db.Column(db.String(120), nullable=False)
    username      = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role          = db.Column(db.Enum(RoleEnum), nullable=False, default=RoleEnum.customer)
    created_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    cart_items = db.relationship('CartItem', backref='user', lazy='select',
                                 cascade='all, delete-orphan')

    # ── Password helpers ──────────────────────────────────────────
    def set_password(self, plain_password: str) -> None:
        """Hash and store the password. Never stores plain text."""
        self.password_hash = generate_password_hash(plain_password)

    def check_password(self, plain_password: str) -> bool:
        return check_password_hash(self.password_hash, plain_password)

    def __repr__(self) -> str:
        return f"<User {self.username!r} role={self.role.value!r}>"
