"""Entry point for running the MYCircle API with Uvicorn."""
from __future__ import annotations

import os

import uvicorn


def main() -> None:
    port = int(os.getenv("MYCIRCLE_PORT", "8000"))
    reload = os.getenv("UVICORN_RELOAD", "false").lower() == "true"
    uvicorn.run("mycircle.main:app", host="0.0.0.0", port=port, reload=reload)


if __name__ == "__main__":
    main()
