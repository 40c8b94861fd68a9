# -*- coding: utf-8 -*-
from __future__ import annotations
import itertools
import logging
import os
from typing import Optional

from torch.utils.tensorboard import SummaryWriter

LOGGER_NAME = "mdp_solver"

_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(module)s - %(funcName)s: %(message)s",
    datefmt="%m/%d/%Y %I:%M:%S %p",
)

_run_ids = itertools.count()


class LoggerManager:
    """
    统一管理 logging 与 tensorboard writer。
    log_dir 为 None 时只输出到控制台，不写 run.log，也不创建 tensorboard。
    每个实例使用独立的子 logger（mdp_solver.run<N>），run.log 只收到本实例的输出；
    控制台输出经由父 logger "mdp_solver" 统一打印。
    """
    def __init__(self, log_dir: Optional[str] = None, use_tensorboard: bool = False):
        self.log_dir = log_dir

        # ---- Python logging ----
        root = logging.getLogger(LOGGER_NAME)
        if root.level == logging.NOTSET:
            root.setLevel(logging.INFO)

        # 控制台 handler 全进程只挂一次，避免多个 planner 重复输出
        if not any(getattr(h, "_mdp_console", False) for h in root.handlers):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(_FORMAT)
            console_handler._mdp_console = True
            root.addHandler(console_handler)

        self.logger = root.getChild(f"run{next(_run_ids)}")

        self.file_handler: Optional[logging.Handler] = None
        self.writer: Optional[SummaryWriter] = None
        if log_dir is not None:
            os.makedirs(log_dir, exist_ok=True)
            self.file_handler = logging.FileHandler(os.path.join(log_dir, "run.log"), mode="w", encoding="utf-8")
            self.file_handler.setFormatter(_FORMAT)
            self.logger.addHandler(self.file_handler)

            # ---- Tensorboard Writer ----
            if use_tensorboard:
                self.writer = SummaryWriter(log_dir)

    def log(self, msg: str):
        self.logger.info(msg)

    def info(self, msg: str):
        self.logger.info(msg)

    def warning(self, msg: str):
        self.logger.warning(msg)

    def debug(self, msg: str):
        self.logger.debug(msg)

    def error(self, msg: str):
        self.logger.error(msg)

    def add_scalar(self, tag: str, value: float, step: int):
        if self.writer is not None:
            self.writer.add_scalar(tag, value, step)

    def close(self):
        """释放 run.log 与 tensorboard writer；可重复调用。"""
        if self.writer is not None:
            self.writer.close()
            self.writer = None
        if self.file_handler is not None:
            self.logger.removeHandler(self.file_handler)
            self.file_handler.close()
            self.file_handler = None

    def __enter__(self) -> "LoggerManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ClosableLoggerMixin:
    """给持有 self.logger: LoggerManager 的 planner 提供 close() 与 with 语法。"""
    logger: LoggerManager

    def close(self) -> None:
        self.logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
