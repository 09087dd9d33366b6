"""Run the web app: ``python -m policy_trace``."""

import uvicorn

from policy_trace.config import settings


def main() -> None:
    uvicorn.run(
        "policy_trace.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
