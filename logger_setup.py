# logger_setup.py
import logging
import os
import sys
from datetime import datetime

# 导入Config类仅用于类型注解
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from config_loader import Config

def setup_logging(config: 'Config', level: str | None = None) -> logging.Logger:
    """
    配置全局日志系统。

    这个函数会设置两种日志输出目标：
    1. 命令行 (stderr，stdout 只留给报告和 JSON 输出)
    2. 文件 (如果配置中启用)

    Args:
        config (Config): 全局配置对象。
        level (str | None): 命令行指定的日志级别，优先于配置文件。

    Returns:
        logging.Logger: 配置好的根logger。
    """
    # 从配置中读取日志级别，并转换为logging模块对应的常量
    log_level_str = (level or config.log_level).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # 定义全局统一的日志格式
    log_formatter = logging.Formatter('%(asctime)s [%(levelname)-8s] %(message)s', datefmt='%H:%M:%S')

    # 获取根logger，配置它会影响到所有未单独配置的子logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 清除任何可能存在的旧处理器，以防重复加载
    root_logger.handlers.clear()

    # 1. 配置命令行输出 (StreamHandler)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(log_formatter)
    root_logger.addHandler(stream_handler)

    # 2. 配置可选的文件输出 (FileHandler)
    if config.log_to_file:
        os.makedirs(config.log_dir, exist_ok=True)
        # 使用时间戳命名日志文件，避免覆盖
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = os.path.join(config.log_dir, f"{timestamp}.log")

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(log_formatter)
        root_logger.addHandler(file_handler)

        logging.info(f"日志将保存到: {log_file}")

    logging.debug(f"日志系统初始化完成，级别: {logging.getLevelName(log_level)}")
    return root_logger
