"""
WSGI entrypoint, e.g. `gunicorn main:app`.
"""

from fieldmemo.main import configure_logging, create_app

configure_logging()
app = create_app()

if __name__ == "__main__":
    from fieldmemo import config

    app.run(host="0.0.0.0", port=config.PORT)
