import logging


class ActorContextFilter(logging.Filter):
    """
    Logging filter to add the acting user to log records
    """
    def filter(self, record):
        actor = getattr(record, 'actor', None)
        record.actor = str(actor) if actor else '-'
        return True


class ActorAwareLogger:
    """
    Actor-aware logger for service modules
    """

    @staticmethod
    def get_logger(name):
        """
        Get a logger instance with actor context
        """
        logger = logging.getLogger(name)

        # Add actor context filter if not already present
        if not any(isinstance(f, ActorContextFilter) for f in logger.filters):
            logger.addFilter(ActorContextFilter())

        return logger


def get_logger(name):
    return ActorAwareLogger.get_logger(name)
