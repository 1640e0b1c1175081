import logging
import os
import sys

from aws_lambda_powertools import Logger


def build_logger(service: str) -> Logger:
    """Powertools logger writing to stderr.

    ``cdk synth`` prints the synthesized template on stdout, so log lines go
    to stderr to keep that output clean.
    """
    return Logger(
        service=service,
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        logger_handler=logging.StreamHandler(sys.stderr),
        log_uncaught_exceptions=False,
    )
