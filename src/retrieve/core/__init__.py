from .request import RequestBuilder, new, is_valid_method, is_valid_url, parse_url
from .output import extract_filename, resolve_output_path, write_stream

__all__ = [
    "RequestBuilder",
    "new",
    "is_valid_method",
    "is_valid_url",
    "parse_url",
    "extract_filename",
    "resolve_output_path",
    "write_stream",
]
