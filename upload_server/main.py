from typing import List, Optional

import uvicorn

from upload_server.app import create_app
from upload_server.config import ServerConfig
from upload_server.logger_config import setup_logger


def main(argv: Optional[List[str]] = None):
    server_config = ServerConfig.from_args(argv)
    logger = setup_logger(server_config.log_level, server_config.log_dir)

    app = create_app(server_config)

    logger.info("Starting upload server...")
    if server_config.webhook_url:
        logger.info(f"Forwarding uploads to webhook: {server_config.webhook_url}")
    else:
        logger.info(f"Document root: {server_config.document_root}")
    logger.info(f"Maximum upload size: {server_config.max_upload_size / (1024*1024):.2f} MB")
    if server_config.protected_methods:
        logger.info(f"Methods requiring a token: {','.join(sorted(server_config.protected_methods))}")
    if server_config.token_generated:
        logger.warning(f"No token configured, generated one: {server_config.token}")
    if server_config.enable_cors:
        logger.info("CORS is enabled")

    uvicorn.run(app, host=server_config.addr, port=server_config.port)


if __name__ == "__main__":
    main()
