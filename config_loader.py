# config_loader.py
import configparser
import logging

class Config:
    """
    全局配置管理类，采用单例模式。
    负责加载 'config.ini' 文件并提供对配置项的访问。
    """
    _instance = None

    def __new__(cls, *args, **kwargs):
        """
        实现单例模式。确保全局只有一个Config实例。
        """
        if not cls._instance:
            cls._instance = super(Config, cls).__new__(cls)
        return cls._instance

    def __init__(self, filepath='config.ini'):
        """
        初始化配置类。
        使用 _initialized 标志防止重复初始化。

        Args:
            filepath (str): 配置文件的路径。
        """
        # 如果已经初始化过，则直接返回，避免重复加载
        if hasattr(self, '_initialized'):
            return

        self.filepath = filepath
        self.parser = configparser.ConfigParser()

        # 定义所有配置项的默认值，这使得程序在没有配置文件时也能正常运行
        self._defaults = {
            'Logging': {'level': 'INFO', 'log_to_file': 'false', 'log_dir': 'logs'},
            'Commands': {'settle_ms': '50'},
            'Watch': {'wait_for_session': 'true', 'timeline_only_when_playing': 'true'},
        }
        self.load()
        self._initialized = True

    def load(self):
        """
        从 .ini 文件加载配置。
        它首先加载内置的默认值，然后用文件中的值覆盖它们。
        """
        parser = configparser.ConfigParser()
        # 1. 读取内置的默认值
        parser.read_dict(self._defaults)
        # 2. 读取文件，文件中的值会覆盖默认值；文件不存在时 read() 会静默跳过
        loaded = parser.read(self.filepath, encoding='utf-8')
        self.parser = parser
        # 3. 将解析的值加载为类的属性，方便直接访问
        self._load_values()
        if loaded:
            logging.debug(f"已从 {self.filepath} 加载配置。")

    def _load_values(self):
        """
        私有方法，将 parser 中的配置项读取为强类型的类属性。
        """
        # [Logging]
        self.log_level = self.parser.get('Logging', 'level')
        self.log_to_file = self.parser.getboolean('Logging', 'log_to_file')
        self.log_dir = self.parser.get('Logging', 'log_dir')
        # [Commands]
        self.settle_ms = self.parser.getint('Commands', 'settle_ms')
        # [Watch]
        self.wait_for_session = self.parser.getboolean('Watch', 'wait_for_session')
        self.timeline_only_when_playing = self.parser.getboolean('Watch', 'timeline_only_when_playing')

def get_config(filepath='config.ini'):
    """
    全局访问点，用于获取Config的单例实例。
    filepath 只在第一次调用时生效。
    """
    return Config(filepath)
