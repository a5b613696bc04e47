import uuid
from loguru import logger

from shared.paths import JSON_SUFFIX

def new_stream_id() -> str:
    """
    A short readable id like 'stream-a3f2' so concurrent streams can be told apart in logs.
    """
    return f"stream-{str(uuid.uuid4())[:4]}"

def parse_resource_path(path: str) -> list[str] | None:
    """
    Turn the URL path of a REST request ('users/ada.json') into tree parts (['users', 'ada']).
    Returns None when the path lacks the `.json` suffix every REST location must carry.
    """
    if not path.endswith(JSON_SUFFIX):
        return None
    return [p for p in path[:-len(JSON_SUFFIX)].split("/") if p]

async def log_connection(event: str, stream_id: str, extra: dict | None = None) -> None:
    """
    Single structured log entry for a stream opening or closing.
    Writes: event, stream_id, and any extra fields.
    """
    log_str = f"event={event} stream_id={stream_id}"
    for k, v in (extra or {}).items():
        log_str += f" {k}={v}"
    logger.info(log_str)
