# -*- coding: utf-8 -*-
import functools
import logging
import os
import time
from typing import Dict, List, Tuple

from .logger_manager import LOGGER_NAME

# 本进程内各求解器运行的 (任务名, 耗时秒)
tasks: List[Tuple[str, float]] = []


def add_task(task_name: str, time_taken: float) -> None:
    tasks.append((task_name, time_taken))


def reset_tasks() -> None:
    """清空耗时记录，便于分段统计（例如每组实验前调用）。"""
    tasks.clear()


def total_time_by_task() -> Dict[str, float]:
    """同名任务的耗时累加，保持首次出现的顺序。"""
    totals: Dict[str, float] = {}
    for name, t in tasks:
        totals[name] = totals.get(name, 0.0) + t
    return totals


def record_time_decorator(task_name: str):
    """记录一次求解的墙钟耗时；被包装函数抛异常时不记录。"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            st = time.perf_counter()
            result = func(*args, **kwargs)
            total_time = round(time.perf_counter() - st, 4)
            logging.getLogger(LOGGER_NAME).info("%s running time: %s seconds", task_name, total_time)
            add_task(task_name=task_name, time_taken=total_time)
            return result
        return wrapper
    return decorator


def out_profile(output_folder: str) -> str:
    """把每个任务的累计耗时写到 output_folder/time_profile.txt，返回文件路径。"""
    os.makedirs(output_folder, exist_ok=True)
    path = os.path.join(output_folder, "time_profile.txt")
    with open(path, "w", encoding="utf-8") as file:
        for task, time_taken in total_time_by_task().items():
            file.write(f"{task}: {time_taken}\n")
    return path
