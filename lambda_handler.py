"""AWS Lambda handler using Mangum to adapt FastAPI to Lambda (ASGI)."""
from mangum import Mangum

from app.api.routes import get_app
from app.config.logger import setup_logging


setup_logging()

app = get_app()
# The pool opens lazily on the first query and lives as long as the container
handler = Mangum(app, lifespan="off")
