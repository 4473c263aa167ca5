"""
Metrics Exposition API Server

Flask endpoints for:
- Scraping (/metrics, text or delimited protobuf)
- Health check
- Registered descriptor listing

Run:
    flask --app api.server run --port 9100

Or with gunicorn (production):
    gunicorn -w 1 -b 0.0.0.0:9100 api.server:app
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from exposition import ENCODERS, Encoder, ProtobufEncoder, TextEncoder
from metrics_registry import __version__
from metrics_registry.errors import MalformedFamilyError, MetricsError
from metrics_registry.registry import Registry, default_registry
from metrics_registry.settings import Settings

logger = logging.getLogger(__name__)

PROTOBUF_MEDIA_TYPE = "application/vnd.google.protobuf"
PROTOBUF_PROTO = "proto=io.prometheus.client.MetricFamily"


def negotiate(accept: Optional[str], default: str = "text") -> Encoder:
    """
    Pick an encoder from an Accept header.

    Media ranges are tried in order of their q-value (ties keep header
    order; q=0 means "not acceptable"). Protobuf is chosen only for the
    protobuf media type carrying the MetricFamily proto parameter, text for
    text/plain or text/*, and `default` for */*. Nothing acceptable also
    falls back to `default`.
    """
    ranges = []
    for part in (accept or "").split(","):
        params = [p.strip() for p in part.split(";")]
        q = 1.0
        for p in params[1:]:
            if p.startswith("q="):
                try:
                    q = float(p[2:])
                except ValueError:
                    q = 0.0
        if q > 0:
            ranges.append((q, params))

    ranges.sort(key=lambda r: r[0], reverse=True)
    for _, params in ranges:
        media_type = params[0].lower()
        if media_type == PROTOBUF_MEDIA_TYPE and PROTOBUF_PROTO in params[1:]:
            return ProtobufEncoder()
        if media_type in ("text/plain", "text/*"):
            return TextEncoder()
        if media_type == "*/*":
            break
    return ENCODERS.get(default, TextEncoder)()


def create_app(registry: Optional[Registry] = None, settings: Optional[Settings] = None) -> Flask:
    """
    Build the exposition app.

    Args:
        registry: Registry to expose (default: the process-wide registry)
        settings: Configuration (default: loaded from environment)
    """
    app = Flask(__name__)
    CORS(app)  # Dashboards fetch /metrics from the browser

    settings = settings or Settings.load()

    def current_registry() -> Registry:
        return registry if registry is not None else default_registry()

    @app.route("/metrics")
    def metrics():
        """Gather and encode the registry."""
        encoder = negotiate(request.headers.get("Accept"), settings.DEFAULT_FORMAT)
        buf = io.BytesIO()
        try:
            encoder.encode(current_registry().gather(), buf)
        except MalformedFamilyError as e:
            logger.error(f"Scrape failed: {e}")
            return jsonify({"error": str(e), "reason": e.reason.value}), 500
        except MetricsError as e:
            logger.error(f"Scrape failed: {e}")
            return jsonify({"error": str(e)}), 500
        return Response(buf.getvalue(), status=200, content_type=encoder.format_type())

    @app.route("/api/health")
    def health_check():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        })

    @app.route("/api/descriptors")
    def descriptors():
        """Every descriptor of every registered collector, sorted by name."""
        descs = [d for c in current_registry().collectors() for d in c.desc()]
        descs.sort(key=lambda d: (d.fq_name, [p.value for p in d.const_label_pairs]))
        return jsonify([
            {
                "fq_name": d.fq_name,
                "help": d.help,
                "const_labels": d.const_labels(),
                "variable_labels": list(d.variable_labels),
            }
            for d in descs
        ])

    return app


app = create_app()
