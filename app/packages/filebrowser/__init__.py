"""文件浏览业务包：虚拟路径解析、元数据索引与文件操作。"""

from app.packages.types import AppPackage

from .api.v1 import api_router
from .core.config import get_settings
from .core.exceptions import generic_exception_handler, http_exception_handler
from .core.logger import logger, set_request_id, setup_logging
from .core.responses import create_response
from .core.security import consume_refreshed_token
from .db.init_db import init_db
from .services.index_scheduler import index_scheduler


async def on_startup() -> None:
    if get_settings().indexer_enabled:
        index_scheduler.start()
    else:
        logger.info("index_scheduler.disabled")


async def on_shutdown() -> None:
    await index_scheduler.stop()


package = AppPackage(
    name="filebrowser",
    api_router=api_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    init_db=init_db,
    create_response=create_response,
    http_exception_handler=http_exception_handler,
    generic_exception_handler=generic_exception_handler,
    set_request_id=set_request_id,
    consume_refreshed_token=consume_refreshed_token,
    on_startup=on_startup,
    on_shutdown=on_shutdown,
)

__all__ = ["package", "api_router", "get_settings"]
