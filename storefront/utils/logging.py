"""
storefront/utils/logging.py
───────────────────────────
Configures structured logging for production.
"""
import os
import logging
from logging.handlers import RotatingFileHandler
from flask import request, has_request_context, session


class RequestFormatter(logging.Formatter):
    """
    Injects request info (URL, IP, shopper identity) into log records
    when a request context is available.
    """
    def format(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
            record.shopper = session.get('user_id') or 'guest'
        else:
            record.url = None
            record.remote_addr = None
            record.shopper = None
        return super().format(record)


def setup_logging(app):
    """
    Configure rotating file logging: logs/app.log
    Max size: 5MB
    Backup count: 5 files
    Format: timestamp | level | module | ip | shopper | url | message

    Module loggers (logging.getLogger(__name__) under the `storefront`
    package) propagate into app.logger, so they share these handlers.
    """
    if not app.config.get('TESTING'):
        try:
            log_dir = os.path.join(app.root_path, '..', 'logs')
            os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'app.log'),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
            file_handler.setFormatter(RequestFormatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | '
                '%(shopper)s | %(url)s | %(message)s'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)
        except OSError:
            app.logger.warning("Log directory not writable; logging to stdout only")

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    ))
    stream_handler.setLevel(logging.INFO)
    app.logger.addHandler(stream_handler)

    app.logger.setLevel(logging.INFO)
    app.logger.info("Storefront startup")
