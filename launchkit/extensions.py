from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from authlib.integrations.flask_client import OAuth

# Global extension instances
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
oauth = OAuth()
# ProxyFix rewrites remote_addr from the trusted proxy chain before this runs.
limiter = Limiter(key_func=get_remote_address, default_limits=[])
