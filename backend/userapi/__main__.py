"""Process entry point: ``python -m userapi``."""

import uvicorn

from userapi.config import get_settings
from userapi.infrastructure.observability import setup_logging
from userapi.infrastructure.process_guard import install_excepthook


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.log_dir)
    install_excepthook()
    uvicorn.run(
        "userapi.main:app",
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        log_config=None,
    )


if __name__ == "__main__":
    main()
