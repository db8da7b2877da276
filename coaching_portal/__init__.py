from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app():
    """App factory entrypoint.

    Routes and runtime wiring live in portal_app; the factory configures
    logging first and registers the runtime services on the app.
    """
    config = load_config()
    configure_logging(config.log_level)

    from . import portal_app

    init_extensions(
        portal_app.app,
        db=portal_app.db,
        bucket=portal_app.bucket,
        catalogue=portal_app.catalogue,
        config=portal_app.config,
    )
    return portal_app.app
