import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(pipeline)s] %(message)s"


class PipelineNameFilter(logging.Filter):
    def __init__(self, pipeline_name: str):
        super().__init__()
        self.pipeline_name = pipeline_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.pipeline = self.pipeline_name
        return True


def setup_logger(pipeline_name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"ecosort_vision.{pipeline_name}")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(PipelineNameFilter(pipeline_name))
        logger.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, pipeline_name: str, log_path: str) -> logging.Handler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(PipelineNameFilter(pipeline_name))
    logger.addHandler(handler)
    return handler
