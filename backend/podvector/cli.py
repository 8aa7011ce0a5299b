"""
POD Vectorizer - command line entry point
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from podvector.config import settings
from podvector.errors import VectorizationError


def run_server(host: str, port: int, reload: bool = False):
    """Run the API server"""
    print("\n" + "="*60)
    print("  POD Vectorizer API")
    print("="*60)
    print(f"  Host: {host}")
    print(f"  Port: {port}")
    print(f"  Docs: http://{host}:{port}/docs")
    print(f"  Auto-reload: {'enabled' if reload else 'disabled'}")
    print("="*60 + "\n")

    uvicorn.run(
        "podvector.main:app",
        host=host,
        port=port,
        reload=reload,
    )


def run_trace(input_path: str, output_path: str, local_only: bool, key_background=None, **overrides):
    """Vectorize a single file from the command line"""
    from podvector.pipeline.engines import LocalTraceEngine
    from podvector.pipeline.runner import vectorize_image
    from podvector.pipeline.selector import EngineSelector, build_selector
    from podvector.vectorizer.trace import TraceOptions

    src = Path(input_path)
    if not src.is_file():
        print(f"Failed: {src} not found")
        sys.exit(1)

    options = TraceOptions.from_settings(settings, **overrides)
    if local_only:
        selector = EngineSelector([LocalTraceEngine()])
    else:
        selector = build_selector(settings)

    try:
        result = asyncio.run(
            vectorize_image(src.read_bytes(), options, selector, key_background=key_background)
        )
    except VectorizationError as e:
        print(f"Failed: {e}")
        sys.exit(1)

    dst = Path(output_path) if output_path else src.with_suffix(".svg")
    dst.write_text(result.encoded.svg_data, encoding="utf-8")

    print(f"Success! {dst} (engine: {result.engine_id})")
    for attempt in result.attempts:
        status = "ok" if attempt.succeeded else f"failed: {attempt.error_detail}"
        print(f"  - {attempt.engine_id}: {status}")
    if result.metrics:
        print(f"  paths={result.metrics.path_count} nodes={result.metrics.node_count}")


def main():
    parser = argparse.ArgumentParser(
        description="POD Vectorizer - convert raster artwork to transparent SVG"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Server command
    server_parser = subparsers.add_parser("serve", help="Run API server")
    server_parser.add_argument("--host", default=settings.api_host, help="Host to bind to")
    server_parser.add_argument("--port", type=int, default=settings.api_port, help="Port to listen on")
    server_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Trace command
    trace_parser = subparsers.add_parser("trace", help="Vectorize an image file")
    trace_parser.add_argument("input", help="Input image (PNG, JPG)")
    trace_parser.add_argument("-o", "--output", help="Output SVG (default: input name with .svg)")
    trace_parser.add_argument("--threshold", type=int, help="Luminance threshold 0-255")
    trace_parser.add_argument("--speckle-size", type=int, help="Drop contours up to this area")
    trace_parser.add_argument("--opt-tolerance", type=float, help="Curve optimization tolerance")
    trace_parser.add_argument("--no-curves", action="store_true", help="Straight segments only")
    trace_parser.add_argument("--foreground", choices=["auto", "luminance", "alpha"])
    trace_parser.add_argument("--no-key", action="store_true", help="Keep near-black pixels opaque")
    trace_parser.add_argument("--local-only", action="store_true", help="Skip CLI and remote fallbacks")

    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level)

    if args.command == "serve":
        run_server(host=args.host, port=args.port, reload=args.reload)
    elif args.command == "trace":
        run_trace(
            args.input,
            args.output,
            local_only=args.local_only,
            key_background=False if args.no_key else None,
            threshold=args.threshold,
            speckle_suppression_size=args.speckle_size,
            curve_optimization_tolerance=args.opt_tolerance,
            use_curves=False if args.no_curves else None,
            foreground=args.foreground,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
