"""Configuration settings for the upload server."""
import argparse
import os
import secrets
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

# Network
DEFAULT_ADDR = "127.0.0.1"
DEFAULT_PORT = 25478

# Upload limits
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5MB
REQUEST_TIMEOUT = 60.0  # seconds

# Webhook transport
WEBHOOK_TIMEOUT = 30.0  # seconds

# Storage
DOCUMENT_ROOT = "./data"

SUPPORTED_METHODS = ("GET", "HEAD", "OPTIONS", "POST", "PUT")


def parse_methods(value: str) -> FrozenSet[str]:
    """Parse a comma separated method list such as "PUT,POST"."""
    methods = frozenset(m.strip().upper() for m in value.split(",") if m.strip())
    unknown = methods - set(SUPPORTED_METHODS)
    if unknown:
        raise ValueError(f"Unsupported methods: {', '.join(sorted(unknown))}")
    return methods


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    document_root: str = DOCUMENT_ROOT
    webhook_url: Optional[str] = None
    max_upload_size: int = MAX_UPLOAD_SIZE
    token: str = ""
    enable_cors: bool = False
    protected_methods: FrozenSet[str] = field(default_factory=frozenset)
    request_timeout: float = REQUEST_TIMEOUT
    webhook_timeout: float = WEBHOOK_TIMEOUT
    addr: str = DEFAULT_ADDR
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    token_generated: bool = False

    def __post_init__(self):
        if self.max_upload_size <= 0:
            raise ValueError("Maximum upload size must be positive")
        if self.request_timeout <= 0:
            raise ValueError("Request timeout must be positive")
        # Normalise whatever iterable was passed in
        object.__setattr__(
            self, "protected_methods", frozenset(m.upper() for m in self.protected_methods)
        )

    @classmethod
    def from_args(cls, argv: Optional[List[str]] = None) -> 'ServerConfig':
        """Create ServerConfig from command line arguments.

        Every option falls back to an UPLOAD_SERVER_* environment variable
        before the built-in default.
        """
        parser = argparse.ArgumentParser(description='Simple HTTP upload server')
        parser.add_argument('--addr', default=os.getenv('UPLOAD_SERVER_ADDR', DEFAULT_ADDR),
                            help='Address to listen on')
        parser.add_argument('--port', type=int,
                            default=int(os.getenv('UPLOAD_SERVER_PORT', DEFAULT_PORT)),
                            help='Port to listen on')
        parser.add_argument('--document-root', default=os.getenv('UPLOAD_SERVER_DOCUMENT_ROOT', DOCUMENT_ROOT),
                            help='Directory files are stored in')
        parser.add_argument('--webhook-url', default=os.getenv('UPLOAD_SERVER_WEBHOOK_URL'),
                            help='Forward uploads to this webhook instead of the document root')
        parser.add_argument('--max-upload-size', type=int,
                            default=int(os.getenv('UPLOAD_SERVER_MAX_UPLOAD_SIZE', MAX_UPLOAD_SIZE)),
                            help='Maximum upload size in bytes')
        parser.add_argument('--token', default=os.getenv('UPLOAD_SERVER_TOKEN', ''),
                            help='Shared secret token (generated when omitted)')
        parser.add_argument('--cors', action='store_true', default=_env_flag('UPLOAD_SERVER_CORS'),
                            help='Enable CORS headers')
        parser.add_argument('--protected-method', action='append', default=None,
                            help='HTTP method that requires the token (repeatable)')
        parser.add_argument('--request-timeout', type=float,
                            default=float(os.getenv('UPLOAD_SERVER_REQUEST_TIMEOUT', REQUEST_TIMEOUT)),
                            help='Request timeout in seconds')
        parser.add_argument('--log-level', default=os.getenv('UPLOAD_SERVER_LOG_LEVEL', 'INFO'),
                            help='Logging level')
        parser.add_argument('--log-dir', default=os.getenv('UPLOAD_SERVER_LOG_DIR'),
                            help='Directory for the log file')
        args = parser.parse_args(argv)

        if args.protected_method:
            protected = parse_methods(",".join(args.protected_method))
        else:
            protected = parse_methods(os.getenv('UPLOAD_SERVER_PROTECTED_METHODS', ''))

        token = args.token or secrets.token_hex(16)

        return cls(
            document_root=args.document_root,
            webhook_url=args.webhook_url or None,
            max_upload_size=args.max_upload_size,
            token=token,
            enable_cors=args.cors,
            protected_methods=protected,
            request_timeout=args.request_timeout,
            addr=args.addr,
            port=args.port,
            log_level=args.log_level,
            log_dir=args.log_dir,
            token_generated=not args.token,
        )
