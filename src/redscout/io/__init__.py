from .store import KeyDescription, RedisStore, StoreGateway, build_client

__all__ = ["KeyDescription", "RedisStore", "StoreGateway", "build_client"]
