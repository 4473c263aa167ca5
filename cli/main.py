from __future__ import annotations

import argparse
import logging
import sys
from typing import BinaryIO, Optional, Sequence

from exposition import ENCODERS
from metrics_registry.errors import MetricsError
from metrics_registry.registry import Registry, default_registry
from metrics_registry.settings import FORMATS, Settings


def open_sink(path: Optional[str]) -> BinaryIO:
    if path:
        return open(path, "wb")
    return sys.stdout.buffer

def cmd_dump(args, registry: Registry):
    """Encode one snapshot of the registry."""
    encoder = ENCODERS[args.format]()
    families = registry.gather()
    sink = open_sink(args.out)
    try:
        encoder.encode(families, sink)
    except MetricsError as e:
        print(f"❌ Encoding failed: {e}", file=sys.stderr)
        raise SystemExit(1)
    finally:
        if args.out:
            sink.close()
        else:
            sink.flush()
    if args.out:
        print(f"✅ Wrote {len(families)} metric families to {args.out}", file=sys.stderr)

def cmd_describe(args, registry: Registry):
    """List every registered descriptor."""
    descs = [d for c in registry.collectors() for d in c.desc()]
    for d in sorted(descs, key=lambda d: d.fq_name):
        labels = ",".join(f"{k}={v}" for k, v in d.const_labels().items())
        variable = ",".join(d.variable_labels)
        print(f"{d.fq_name}\t{{{labels}}}\t[{variable}]\t{d.help}")

def cmd_serve(args, registry: Registry):
    """Run the exposition server (development server)."""
    from api.server import create_app

    app = create_app(registry)
    app.run(host=args.host, port=args.port)

def main(argv: Optional[Sequence[str]] = None, registry: Optional[Registry] = None) -> None:
    settings = Settings.load()

    p = argparse.ArgumentParser(prog="metrics-registry")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # dump
    d = sub.add_parser("dump", help="Encode the current snapshot")
    d.add_argument("--format", choices=FORMATS, default=settings.DEFAULT_FORMAT)
    d.add_argument("--out", help="Output file (default: stdout)")
    d.set_defaults(func=cmd_dump)

    # describe
    ds = sub.add_parser("describe", help="List registered descriptors")
    ds.set_defaults(func=cmd_describe)

    # serve
    s = sub.add_parser("serve", help="Serve /metrics over HTTP")
    s.add_argument("--host", default=settings.HOST)
    s.add_argument("--port", type=int, default=settings.PORT)
    s.set_defaults(func=cmd_serve)

    args = p.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if hasattr(args, "func"):
        args.func(args, registry if registry is not None else default_registry())

if __name__ == "__main__":
    main()
