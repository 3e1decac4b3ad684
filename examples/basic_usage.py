"""
Basic usage examples for retrieve.
"""
import logging

import httpx

from retrieve import Context, RetrieveError, new, setup_logging


# =============================================================================
# Example 1: Download a file to a fixed path
# =============================================================================
def example1_download_cat() -> None:
    new("https://cataas.com/cat").set_output("cat.png").exec()


# =============================================================================
# Example 2: POST JSON and save the reply into the current directory
# =============================================================================
def example2_post_json() -> None:
    path = (
        new("https://httpbin.org/anything")
        .set_method("POST")
        .set_header("Accept", "application/json")
        .set_query_param("source", "retrieve")
        .set_json({"name": "retrieve", "tags": ["http", "download"]})
        .set_timeout(5.0)
        .exec()
    )
    print(f"saved reply to {path}")


# =============================================================================
# Example 3: Bound the download with a cancellable context
# =============================================================================
def example3_with_deadline() -> None:
    ctx, cancel = Context.background().with_timeout(2.0)
    try:
        new("https://httpbin.org/delay/5").set_context(ctx).set_output("slow.json").exec()
    except (RetrieveError, httpx.TimeoutException) as e:
        print(f"gave up: {e}")
    finally:
        cancel()


if __name__ == "__main__":
    setup_logging(logging.INFO)
    try:
        example1_download_cat()
    except RetrieveError as e:
        raise SystemExit(f"failed to download file: {e}")
    example2_post_json()
    example3_with_deadline()
