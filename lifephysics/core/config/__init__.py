"""
Configuration subsystem for Life Physics.

- **config.py**: static configuration from environment variables
- **manager.py**: game balance configuration from YAML files

``ConfigManager`` is imported from its own module because it depends on the
logging subsystem, which itself reads ``Config``.

Usage Examples
--------------
```python
from lifephysics.core.config import Config
from lifephysics.core.config.manager import ConfigManager

if Config.sync_configured():
    ...
chance = ConfigManager.get("rewards.task.critical_chance", 0.2)
```
"""

from lifephysics.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
