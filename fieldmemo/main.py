import logging

from flask import Flask

from fieldmemo import config
from fieldmemo.api.routes import api
from fieldmemo.services.llm import OpenAIServices
from fieldmemo.services.supabase import SupabaseStore


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(message)s",
    )


# ================================
# INIT
# ================================
def create_app(store=None, services=None) -> Flask:
    """
    Build the Flask app. The store and AI services are created once here
    and shared by every request.
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

    app.extensions["fieldmemo.store"] = store if store is not None else SupabaseStore.from_env()
    app.extensions["fieldmemo.services"] = services if services is not None else OpenAIServices()

    app.register_blueprint(api)
    return app


# ================================
# START
# ================================
if __name__ == "__main__":
    configure_logging()
    create_app().run(host="0.0.0.0", port=config.PORT)
