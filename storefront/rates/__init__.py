from flask import Blueprint

rates = Blueprint('rates', __name__)

from storefront.rates import routes  # noqa: F401, E402
from storefront.rates import models  # noqa: F401, E402  — registers GoldRate with SQLAlchemy
