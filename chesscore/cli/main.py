from __future__ import annotations

import uvicorn

from chesscore.config import ServerConfig


def main() -> None:
    config = ServerConfig.from_env()
    uvicorn.run(
        "chesscore.protocol.http.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
