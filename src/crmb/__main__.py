"""CRMB entrypoint.

Run with:
  python -m crmb
"""

import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("CRMB_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("CRMB_HOST", "0.0.0.0")
    port = int(os.getenv("CRMB_PORT") or os.getenv("PORT") or "3000")
    reload = os.getenv("CRMB_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("crmb.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
