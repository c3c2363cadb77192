#!/usr/bin/env python3
"""
Logging configuration for the court booking service
Console output plus rotating log files, with a dedicated file for the booking workflow
"""

import os
import shutil
import logging
import logging.handlers
from datetime import datetime
from typing import Optional

from infrastructure.settings import AppSettings, get_settings

# Components whose records also go to reservations.log
BOOKING_WORKFLOW_LOGGERS = (
    'BookingService',
    'ConflictDetector',
    'AutoAcceptEvaluator',
    'AutoAcceptScheduler',
    'ReservationStore',
    'ParticipantService',
    'JoinRequestService',
)

CACHE_LOGGERS = (
    'MessageCache',
    'KeyValueStore',
)


def _clear_directory(log_dir: str) -> None:
    for filename in os.listdir(log_dir):
        file_path = os.path.join(log_dir, filename)
        try:
            if os.path.isfile(file_path) or os.path.islink(file_path):
                os.unlink(file_path)
            elif os.path.isdir(file_path):
                shutil.rmtree(file_path)
        except OSError as e:
            print(f'Failed to delete {file_path}. Reason: {e}')


def setup_logging(settings: Optional[AppSettings] = None, *, verbose: bool = False) -> str:
    """
    Set up logging with a console handler and rotating file handlers.
    Previous logs in the configured directory are cleared before the new session starts.

    Args:
        settings: Application settings; defaults to ``get_settings()``
        verbose: Force DEBUG output on the console regardless of production mode

    Returns:
        The log directory in use
    """
    settings = settings or get_settings()
    production = settings.production_mode
    log_dir = settings.log_directory

    if os.path.exists(log_dir):
        _clear_directory(log_dir)
    os.makedirs(log_dir, exist_ok=True)

    main_log_file = os.path.join(log_dir, 'bot.log')
    error_log_file = os.path.join(log_dir, 'bot_errors.log')
    reservations_log_file = os.path.join(log_dir, 'reservations.log')

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if (verbose or not production) else logging.INFO)
    root_logger.handlers = []

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d in %(funcName)s()] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    if verbose:
        console_handler.setLevel(logging.DEBUG)
    elif production:
        console_handler.setLevel(logging.WARNING)
    else:
        console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    main_file_handler = logging.handlers.RotatingFileHandler(
        main_log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    main_file_handler.setLevel(logging.WARNING if production else logging.INFO)
    main_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(main_file_handler)

    error_file_handler = logging.handlers.RotatingFileHandler(
        error_log_file,
        maxBytes=5*1024*1024,  # 5MB
        backupCount=5,
        encoding='utf-8'
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(error_file_handler)

    reservations_handler = logging.handlers.RotatingFileHandler(
        reservations_log_file,
        maxBytes=20*1024*1024,  # 20MB
        backupCount=5,
        encoding='utf-8'
    )
    reservations_handler.setLevel(logging.INFO if production else logging.DEBUG)
    reservations_handler.setFormatter(detailed_formatter)

    workflow_level = logging.INFO if production else logging.DEBUG
    for name in BOOKING_WORKFLOW_LOGGERS:
        component_logger = logging.getLogger(name)
        component_logger.handlers = [reservations_handler]
        component_logger.setLevel(workflow_level)

    for name in CACHE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if production else logging.DEBUG)

    root_logger.info("="*80)
    root_logger.info(f"Booking service logging initialized - {datetime.now()}")
    root_logger.info(f"Production Mode: {'ON' if production else 'OFF'}")
    root_logger.info(f"Main log: {main_log_file}")
    root_logger.info(f"Error log: {error_log_file}")
    root_logger.info(f"Reservations log: {reservations_log_file}")
    root_logger.info("="*80)
    return log_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name

    Args:
        name: Logger name, usually the component class name

    Returns:
        logging.Logger instance
    """
    return logging.getLogger(name)
