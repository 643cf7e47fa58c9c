import logging

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from core import settings  # noqa: E402

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("service:app", host=settings.HOST, port=settings.PORT, reload=settings.is_dev())
