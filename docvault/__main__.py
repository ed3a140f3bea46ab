"""Run the API server: ``python -m docvault``."""

import uvicorn

from .config import load_config


def main():
    cfg = load_config()
    uvicorn.run(
        "docvault.api:app",
        host=cfg.api.host,
        port=cfg.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
