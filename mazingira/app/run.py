from __future__ import annotations

import uvicorn

from ..chat.api import build_app
from ..config.settings import load_settings
from ..shared.logging import configure_logging


def main():
    cfg = load_settings(".env")
    configure_logging(cfg.log_level)

    app = build_app(cfg)
    print(f"[run] Mazingira API: http://{cfg.api_host}:{cfg.api_port}")
    print(f"[run] Docs: http://{cfg.api_host}:{cfg.api_port}/docs")
    uvicorn.run(app, host=cfg.api_host, port=cfg.api_port, access_log=False)

if __name__ == "__main__":
    main()
