#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Logging module for the Secure Password Vault"""

import logging
import os

LOGGER_NAME = "PasswordVault"


def setup_logger(log_file, level=logging.INFO):
    """
    Set up the logging system

    Args:
        log_file: Path to the log file
        level: Logging level for the file handler

    Returns:
        Logger instance
    """
    # Create logger
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Repeated setup in one process must not duplicate output
    log_path = os.path.abspath(log_file)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
            return logger

    # Create file handler
    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level)

    # Create formatter
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)

    # Add handler to logger
    logger.addHandler(file_handler)

    return logger
