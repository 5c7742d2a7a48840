import logging

import uvicorn

from futuretek.config import settings

logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)-5s [%(name)s] %(message)s")

if __name__ == "__main__":
    uvicorn.run(
        "futuretek.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.dev_reload,
        log_level=settings.log_level.lower(),
    )
