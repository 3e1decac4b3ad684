"""
Configuration defaults and environment resolution for retrieve.
"""
import os
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Constants
DEFAULT_TIMEOUT = 10.0
DEFAULT_OUTPUT = "./"
DEFAULT_METHOD = "GET"
DEFAULT_CHUNK_SIZE = 64 * 1024

ENV_TIMEOUT = "RETRIEVE_TIMEOUT"
ENV_OUTPUT = "RETRIEVE_OUTPUT"
ENV_FOLLOW_REDIRECTS = "RETRIEVE_FOLLOW_REDIRECTS"
ENV_CHUNK_SIZE = "RETRIEVE_CHUNK_SIZE"
ENV_USER_AGENT = "RETRIEVE_USER_AGENT"


def resolve(arg: Any, env_keys: Union[str, List[str]], default: Any) -> Any:
    """
    Resolve a value in priority order:
    1. Direct argument (if not None)
    2. Environment variables
    3. Default value
    """
    if arg is not None:
        return arg

    if isinstance(env_keys, str):
        env_keys = [env_keys]

    for key in env_keys:
        if key:
            val = os.getenv(key)
            if val is not None and val != "":
                return val

    return default


def resolve_bool(arg: Any, env_keys: Union[str, List[str]], default: bool) -> bool:
    """Resolve boolean value with string conversion support."""
    val = resolve(arg, env_keys, default)

    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() in ("true", "1", "yes", "on")
    return bool(val)


def resolve_float(arg: Any, env_keys: Union[str, List[str]], default: float) -> float:
    val = resolve(arg, env_keys, default)
    try:
        return float(val)
    except (TypeError, ValueError):
        raise ValueError(f"Expected a number for {env_keys}, got {val!r}")


def resolve_int(arg: Any, env_keys: Union[str, List[str]], default: int) -> int:
    val = resolve(arg, env_keys, default)
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValueError(f"Expected an integer for {env_keys}, got {val!r}")


class RetrieveConfig(BaseModel):
    """Defaults applied to every new RequestBuilder."""
    timeout: float = DEFAULT_TIMEOUT
    output: str = DEFAULT_OUTPUT
    follow_redirects: bool = True
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    user_agent: Optional[str] = None

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be greater than zero")
        return v

    @field_validator("output")
    @classmethod
    def validate_output(cls, v: str) -> str:
        if not v:
            raise ValueError("output must not be empty")
        return v

    @classmethod
    def from_env(
        cls,
        timeout: Optional[float] = None,
        output: Optional[str] = None,
        follow_redirects: Optional[bool] = None,
        chunk_size: Optional[int] = None,
        user_agent: Optional[str] = None,
    ) -> "RetrieveConfig":
        """Build a config from arguments, falling back to RETRIEVE_* env vars."""
        return cls(
            timeout=resolve_float(timeout, ENV_TIMEOUT, DEFAULT_TIMEOUT),
            output=resolve(output, ENV_OUTPUT, DEFAULT_OUTPUT),
            follow_redirects=resolve_bool(follow_redirects, ENV_FOLLOW_REDIRECTS, True),
            chunk_size=resolve_int(chunk_size, ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE),
            user_agent=resolve(user_agent, ENV_USER_AGENT, None),
        )
