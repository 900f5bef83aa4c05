# webstream/__main__.py
import argparse
import logging

import uvicorn

from . import settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the webstream session proxy.")
    parser.add_argument("--host", default=settings.HOST)
    parser.add_argument("-p", "--port", type=int, default=settings.PORT)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger(__name__).info("Starting webstream proxy on %s:%s", args.host, args.port)
    uvicorn.run("webstream.api:create_app", factory=True, host=args.host, port=args.port,
                log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
