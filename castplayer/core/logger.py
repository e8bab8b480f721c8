import os
import sys
import logging
from typing import Optional
from logging.handlers import RotatingFileHandler


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Logger:
    """
    Настраивает логгер пакета castplayer: файл с ротацией + консоль.
    Модули пишут в свои logging.getLogger(__name__), сообщения всплывают сюда.
    """

    _instance: Optional['Logger'] = None
    _logger: Optional[logging.Logger] = None
    log_dir: Optional[str] = None

    def __new__(cls) -> 'Logger':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._setup_logger()
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'Logger':
        if cls._instance is None:
            cls._instance = Logger()
        return cls._instance

    @classmethod
    def configure(cls, log_dir: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
        """Задаёт каталог логов до первого обращения к логгеру."""
        cls.log_dir = log_dir
        logger = cls.get_logger()
        logger.setLevel(level)
        return logger

    @classmethod
    def _default_log_dir(cls) -> str:
        if getattr(sys, 'frozen', False):
            return os.path.join(os.path.dirname(sys.executable), 'logs')
        return os.path.join(os.path.expanduser('~'), '.castplayer', 'logs')

    @classmethod
    def _setup_logger(cls):
        if cls._logger is not None:
            return

        cls._logger = logging.getLogger('castplayer')
        cls._logger.setLevel(logging.INFO)
        formatter = logging.Formatter(LOG_FORMAT)

        base_path = cls.log_dir or cls._default_log_dir()
        try:
            os.makedirs(base_path, exist_ok=True)

            log_file = os.path.join(base_path, 'castplayer.log')
            handler = RotatingFileHandler(log_file, maxBytes=2*1024*1024, backupCount=3, encoding='utf-8')
            handler.setFormatter(formatter)
            cls._logger.addHandler(handler)
        except OSError as e:
            print(f"Failed to setup file handler: {e}")

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        cls._logger.addHandler(console_handler)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        if cls._logger is None:
            cls._setup_logger()
        return cls._logger

    @classmethod
    def info(cls, message: str):
        cls.get_instance().get_logger().info(message)

    @classmethod
    def error(cls, message: str):
        cls.get_instance().get_logger().error(message)

    @classmethod
    def warning(cls, message: str):
        cls.get_instance().get_logger().warning(message)

    @classmethod
    def debug(cls, message: str):
        cls.get_instance().get_logger().debug(message)
