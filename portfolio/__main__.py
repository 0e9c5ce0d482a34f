import logging

import uvicorn

from portfolio import config


def main() -> None:
    logging.basicConfig(
        level=config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "portfolio.main:app",
        host="0.0.0.0",
        port=config.get_port(),
        proxy_headers=config.trust_proxy(),
        forwarded_allow_ips="*" if config.trust_proxy() else None,
        log_config=None,
    )


if __name__ == "__main__":
    main()
