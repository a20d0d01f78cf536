import logging

import uvicorn

from .config import Settings
from .main import create_app


def run() -> None:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app(settings)
    logging.getLogger("linkdash").info("serving on http://%s:%s (log dates UTC%+d)", settings.host, settings.port, settings.log_utc_offset_hours)
    # uvicorn's own access log would duplicate the daily access files
    uvicorn.run(app, host=settings.host, port=settings.port, access_log=False)


if __name__ == "__main__":
    run()
