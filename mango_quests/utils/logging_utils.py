import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level_name: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger for the service.
    
    Args:
        level_name: The logging level (e.g., "DEBUG", "INFO").
        log_file: Optional path of a file that receives the same records as the console.
        
    Returns:
        The root logger.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    
    # Calling twice (tests, reloads) must not duplicate output
    for handler in list(root.handlers):
        if getattr(handler, "_mango_quests", False):
            root.removeHandler(handler)
            handler.close()
    
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    console._mango_quests = True
    root.addHandler(console)
    
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path), mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler._mango_quests = True
        root.addHandler(file_handler)
    
    return root
