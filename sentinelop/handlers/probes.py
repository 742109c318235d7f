import datetime
import kopf
from sentinelop.resources.redis import RedisResource


@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id='api_client')
def get_api_client_state(**kwargs):
    return RedisResource.shared_api_client is not None
