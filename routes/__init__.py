from .health import health_bp
from .auth import auth_bp
from .packages import packages_bp
from .reservations import reservations_bp
from .payments import payments_bp
from .stripe_webhook import webhook_bp
from .admin import admin_bp
