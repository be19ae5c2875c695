# main.py
from __future__ import annotations

import asyncio
from hypercorn.asyncio import serve
from hypercorn.config import Config as HyperConfig
from nexus import create_app
from nexus.config import ServiceConfigs


async def main():
    service_configs = ServiceConfigs()
    app = await create_app(service_configs=service_configs)

    cfg = HyperConfig()
    cfg.bind = [f"{service_configs.host}:{service_configs.port}"]

    await serve(app, cfg)


if __name__ == "__main__":
    asyncio.run(main())
