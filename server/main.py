# =============================================================================
# Interview Snap - Relay Entry Point
# =============================================================================
# CLI entry point for starting the FastAPI streaming relay under uvicorn.
# =============================================================================

import argparse
import logging

import uvicorn

from config import get_config


def main():
    """Parse CLI arguments, apply overrides, and start the relay."""
    parser = argparse.ArgumentParser(
        description="Interview Snap — streaming analysis relay",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", type=str, default=None, help="Server bind address")
    parser.add_argument("--port", type=int, default=None, help="Server bind port")
    parser.add_argument("--model", type=str, default=None, help="Upstream chat-completions model")
    parser.add_argument("--max-tokens", type=int, default=None, help="Generated token ceiling")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()

    if args.host is not None:
        config.server_host = args.host
    if args.port is not None:
        config.server_port = args.port
    if args.model is not None:
        config.openai_model = args.model
    if args.max_tokens is not None:
        config.max_tokens = args.max_tokens

    config.server_url = f"http://{config.server_host}:{config.server_port}"

    print("\n" + "=" * 60)
    print("  Interview Snap — Streaming Relay")
    print("=" * 60)
    print(f"  Model      : {config.openai_model}")
    print(f"  Max tokens : {config.max_tokens}")
    print(f"  Detail     : {config.image_detail}")
    print(f"  API key    : {'configured' if config.openai_api_key else 'MISSING'}")
    print(f"  Route      : POST {config.analyze_route}")
    print(f"  Listening  : {config.server_host}:{config.server_port}")
    print("=" * 60 + "\n")

    uvicorn.run(
        "server.app:app",
        host=config.server_host,
        port=config.server_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
