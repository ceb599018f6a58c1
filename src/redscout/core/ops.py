"""Classification of store commands into coarse operation classes."""

from __future__ import annotations

from enum import Enum


class OpClass(str, Enum):
    GET = "GET"
    SET = "SET"
    DEL = "DEL"
    EVAL = "EVAL"
    UNKNOWN = "UNKNOWN"
    TOTAL = "TOTAL"


_GET_COMMANDS = (
    "GET", "MGET", "HGET", "HMGET", "HGETALL", "ZRANGE", "ZREVRANGE", "LRANGE",
    "SCARD", "SISMEMBER", "ZCARD", "ZRANK", "GETBIT", "EXISTS", "TTL", "PTTL",
    "TYPE", "KEYS", "SCAN",
)  # fmt: skip
_SET_COMMANDS = (
    "SET", "MSET", "HSET", "HMSET", "LPUSH", "RPUSH", "SADD", "ZADD", "SETBIT",
    "INCR", "DECR", "INCRBY", "APPEND", "SETEX", "PSETEX", "SETNX", "ZINCRBY",
    "EXPIRE", "PEXPIRE", "EXPIREAT", "PERSIST", "RENAME", "RENAMENX", "MOVE",
    "LSET", "LINSERT", "HINCRBY", "HINCRBYFLOAT",
)  # fmt: skip
_DEL_COMMANDS = (
    "DEL", "UNLINK", "FLUSHDB", "FLUSHALL", "LPOP", "RPOP", "SPOP", "ZREM",
    "HDEL", "SREM", "LTRIM",
)  # fmt: skip

COMMAND_CLASSES: dict[str, OpClass] = {
    **{name: OpClass.GET for name in _GET_COMMANDS},
    **{name: OpClass.SET for name in _SET_COMMANDS},
    **{name: OpClass.DEL for name in _DEL_COMMANDS},
    "EVAL": OpClass.EVAL,
}

# Commands whose first argument is a script body rather than a key.
SCRIPT_COMMANDS = frozenset({"eval"})


def classify_command(command: str) -> OpClass:
    return COMMAND_CLASSES.get(command.upper(), OpClass.UNKNOWN)


__all__ = ["OpClass", "COMMAND_CLASSES", "SCRIPT_COMMANDS", "classify_command"]
